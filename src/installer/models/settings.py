"""Service settings with environment-variable overrides."""

import os
import sys
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

ENV_PREFIX = "OPENCLAW_INSTALLER_"


def default_data_dir() -> Path:
    """Per-user application data directory (no elevated privileges needed).

    - macOS:   ~/Library/Application Support/OpenClawInstaller
    - Windows: %APPDATA%\\OpenClawInstaller
    - Linux:   $XDG_DATA_HOME/openclaw-installer (default ~/.local/share)
    """
    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / "OpenClawInstaller"
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA") or str(home / "AppData" / "Roaming")
        return Path(appdata) / "OpenClawInstaller"
    xdg = os.environ.get("XDG_DATA_HOME") or str(home / ".local" / "share")
    return Path(xdg) / "openclaw-installer"


class InstallerSettings(BaseModel):
    """Installer configuration.

    Every field can be overridden with ``OPENCLAW_INSTALLER_<FIELD>`` (upper
    case), e.g. ``OPENCLAW_INSTALLER_PORT=9000``.
    """

    data_dir: Path = Field(default_factory=default_data_dir)
    openclaw_version: str = Field("latest", description="Package version to install")
    openclaw_bin: str = Field("openclaw", description="OpenClaw CLI executable")
    runtime_bin: str = Field("node", description="Runtime executable name or path")
    runtime_min_version: str = Field("22.0.0", pattern=r"^\d+\.\d+\.\d+$")
    runtime_sha256: Optional[str] = Field(
        None, pattern=r"^[a-fA-F0-9]{64}$", description="Expected runtime digest"
    )
    gateway_url: str = Field("http://127.0.0.1:18789", pattern=r"^https?://.+")
    report_url: Optional[str] = Field(
        None, pattern=r"^https?://.+", description="Progress webhook endpoint"
    )
    repair_failure_tolerance: int = Field(
        1, ge=0, description="Failed repair checks tolerated for overall success"
    )
    host: str = "127.0.0.1"
    port: int = Field(12316, gt=0, lt=65536)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "InstallerSettings":
        """Build settings from defaults, then environment, then ``overrides``."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def checkpoint_path(self) -> Path:
        return self.data_dir / "checkpoints" / "install-checkpoint.json"

    @property
    def install_summary_path(self) -> Path:
        return self.data_dir / "install-state.json"

    @property
    def openclaw_dir(self) -> Path:
        return self.data_dir / "openclaw"

    @property
    def config_path(self) -> Path:
        return self.openclaw_dir / "openclaw.json"

    @property
    def config_history_dir(self) -> Path:
        return self.data_dir / "config-history"

    @property
    def vault_path(self) -> Path:
        return self.data_dir / "vault" / "credentials.json"

    @property
    def log_file(self) -> Path:
        return self.data_dir / "logs" / "installer.log"
