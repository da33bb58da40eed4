"""Language runtime resolution for the OpenClaw package."""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from installer.errors import InstallerError
from installer.models.services import RuntimeInfo, RuntimeType
from installer.utils.command import run_command
from installer.utils.verification import meets_minimum_version, verify_sha256


class RuntimeNotFoundError(InstallerError):
    code = "RUNTIME_NOT_FOUND"


class RuntimeResolver:
    """Finds the runtime binary and checks that it is usable.

    Resolution order: explicit path in ``runtime_bin`` → lookup on PATH.
    The result is ``verified`` when the version meets the minimum and, if an
    expected SHA-256 is configured, the binary digest matches it.
    """

    VERSION_TIMEOUT = 5.0

    def __init__(
        self,
        runtime_bin: str = "node",
        min_version: str = "22.0.0",
        expected_sha256: Optional[str] = None,
    ):
        self.logger = logging.getLogger("installer.runtime")
        self.runtime_bin = runtime_bin
        self.min_version = min_version
        self.expected_sha256 = expected_sha256

    async def resolve(self) -> RuntimeInfo:
        """Resolve the runtime.

        Returns:
            RuntimeInfo (``verified`` may be False; callers decide)

        Raises:
            RuntimeNotFoundError: If no executable could be located
            CommandError: If ``--version`` fails
        """
        path, runtime_type = self._locate()
        self.logger.info(f"Resolving runtime at {path} ({runtime_type.value})")

        result = await run_command([path, "--version"], timeout=self.VERSION_TIMEOUT)
        version = result.stdout.strip()

        verified = self._verify(Path(path), version)
        info = RuntimeInfo(type=runtime_type, path=path, version=version, verified=verified)
        self.logger.info(f"Runtime resolved: version={version}, verified={verified}")
        return info

    def _locate(self) -> tuple[str, RuntimeType]:
        candidate = Path(self.runtime_bin).expanduser()
        if candidate.is_absolute() or os.sep in self.runtime_bin:
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return str(candidate), RuntimeType.CONFIGURED
            raise RuntimeNotFoundError(f"configured runtime {candidate} is not an executable file")

        found = shutil.which(self.runtime_bin)
        if not found:
            raise RuntimeNotFoundError(f"{self.runtime_bin} not found on PATH")
        return found, RuntimeType.SYSTEM

    def _verify(self, path: Path, version: str) -> bool:
        if not meets_minimum_version(version, self.min_version):
            self.logger.warning(
                f"Runtime version {version!r} is below minimum {self.min_version}"
            )
            return False
        if self.expected_sha256 and not verify_sha256(path, self.expected_sha256):
            return False
        return True
