"""OpenClaw package installation (npm, install script, or source build)."""

import inspect
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from installer.errors import CommandError
from installer.models.services import InstallMethod
from installer.services.interfaces import ProgressCallback, RuntimeResolverProtocol
from installer.utils.command import run_command

INSTALL_SCRIPT_URL = "https://openclaw.ai/install.sh"
SOURCE_REPO_URL = "https://github.com/openclaw/openclaw.git"


class PackageInstaller:
    """Installs the OpenClaw CLI.

    Every method is safe to repeat: npm/script installs are skipped when the
    CLI already answers ``--version``, and the source build pulls instead of
    cloning when the checkout exists.
    """

    VERSION_TIMEOUT = 5.0
    NPM_TIMEOUT = 300.0
    SCRIPT_TIMEOUT = 600.0
    GIT_TIMEOUT = 300.0

    def __init__(
        self,
        runtime: RuntimeResolverProtocol,
        openclaw_bin: str = "openclaw",
        version: str = "latest",
        source_dir: Optional[Path] = None,
    ):
        """Initialize package installer.

        Args:
            runtime: Resolver for the runtime that npm runs on
            openclaw_bin: CLI executable name used for the presence check
            version: npm dist-tag or version to install
            source_dir: Checkout location for git installs
        """
        self.logger = logging.getLogger("installer.package")
        self.runtime = runtime
        self.openclaw_bin = openclaw_bin
        self.version = version
        self.source_dir = Path(source_dir) if source_dir else Path("./openclaw-source")

    async def is_installed(self) -> bool:
        return await self.installed_version() is not None

    async def installed_version(self) -> Optional[str]:
        try:
            result = await run_command(
                [self.openclaw_bin, "--version"], timeout=self.VERSION_TIMEOUT
            )
        except CommandError:
            return None
        return result.stdout.strip() or None

    async def install(
        self,
        method: InstallMethod = InstallMethod.NPM,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Install OpenClaw with the given method.

        Args:
            method: npm (global package), script (official installer), or git (source build)
            on_progress: Receives human-readable progress lines

        Raises:
            CommandError: If any install command fails
        """
        method = InstallMethod(method)
        self.logger.info(f"Installing OpenClaw via {method.value}")

        if method == InstallMethod.GIT:
            await self._install_from_source(on_progress)
        else:
            existing = await self.installed_version()
            if existing:
                self.logger.info(f"OpenClaw already installed: {existing}")
                await self._report(on_progress, f"OpenClaw {existing} already installed")
                return
            if method == InstallMethod.SCRIPT:
                await self._install_via_script(on_progress)
            else:
                await self._install_via_npm(on_progress)

        installed = await self.installed_version()
        if installed:
            await self._report(on_progress, f"OpenClaw {installed} installed successfully")
        else:
            self.logger.warning("OpenClaw installed but binary not found on PATH yet")
            await self._report(on_progress, "OpenClaw installed, binary not yet on PATH")

    async def _install_via_npm(self, on_progress: Optional[ProgressCallback]) -> None:
        runtime = await self.runtime.resolve()
        npm = self._npm_argv(runtime.path)
        await self._report(on_progress, f"Running: npm install -g openclaw@{self.version}")
        await run_command(
            [*npm, "install", "-g", f"openclaw@{self.version}"],
            timeout=self.NPM_TIMEOUT,
            env={"PATH": self._path_with(runtime.path)},
        )

    async def _install_via_script(self, on_progress: Optional[ProgressCallback]) -> None:
        await self._report(on_progress, f"Running: curl -fsSL {INSTALL_SCRIPT_URL} | bash")
        await run_command(
            ["/bin/bash", "-c", f"curl -fsSL {INSTALL_SCRIPT_URL} | bash"],
            timeout=self.SCRIPT_TIMEOUT,
        )

    async def _install_from_source(self, on_progress: Optional[ProgressCallback]) -> None:
        if (self.source_dir / ".git").exists():
            await self._report(on_progress, "Repository exists, pulling latest...")
            await run_command(
                ["git", "pull", "--ff-only"], timeout=self.GIT_TIMEOUT, cwd=str(self.source_dir)
            )
        else:
            await self._report(on_progress, f"Running: git clone {SOURCE_REPO_URL}")
            self.source_dir.parent.mkdir(parents=True, exist_ok=True)
            await run_command(
                ["git", "clone", SOURCE_REPO_URL, str(self.source_dir)], timeout=self.GIT_TIMEOUT
            )

        runtime = await self.runtime.resolve()
        npm = self._npm_argv(runtime.path)
        env = {"PATH": self._path_with(runtime.path)}

        await self._report(on_progress, "Installing dependencies...")
        await run_command(
            [*npm, "install"], timeout=self.NPM_TIMEOUT, cwd=str(self.source_dir), env=env
        )
        await self._report(on_progress, "Building OpenClaw from source...")
        await run_command(
            [*npm, "run", "build"], timeout=self.NPM_TIMEOUT, cwd=str(self.source_dir), env=env
        )
        self.logger.info(f"OpenClaw built from source in {self.source_dir}")

    @staticmethod
    def _npm_argv(runtime_path: str) -> list[str]:
        """npm-cli.js next to the runtime, else plain ``npm`` from PATH."""
        runtime_dir = Path(runtime_path).parent
        for candidate in (
            runtime_dir / "node_modules" / "npm" / "bin" / "npm-cli.js",
            runtime_dir.parent / "lib" / "node_modules" / "npm" / "bin" / "npm-cli.js",
        ):
            if candidate.exists():
                return [runtime_path, str(candidate)]
        return ["npm.cmd" if sys.platform == "win32" else "npm"]

    @staticmethod
    def _path_with(runtime_path: str) -> str:
        return os.pathsep.join([str(Path(runtime_path).parent), os.environ.get("PATH", "")])

    async def _report(self, on_progress: Optional[ProgressCallback], message: str) -> None:
        self.logger.info(message)
        if on_progress is None:
            return
        result = on_progress(message)
        if inspect.isawaitable(result):
            await result
