"""Value objects exchanged with the installer's collaborators."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RuntimeType(str, Enum):
    SYSTEM = "system"
    CONFIGURED = "configured"


class RuntimeInfo(BaseModel):
    """Resolved language runtime used to install and run OpenClaw."""

    type: RuntimeType
    path: str
    version: str = Field(..., description="Version string as reported, e.g. v22.3.0")
    verified: bool = Field(..., description="Integrity and minimum-version check passed")


class DaemonStatus(BaseModel):
    """Gateway daemon status snapshot."""

    running: bool
    pid: Optional[int] = None
    version: Optional[str] = None


class InstallMethod(str, Enum):
    """How the OpenClaw package gets onto the machine."""

    NPM = "npm"
    SCRIPT = "script"
    GIT = "git"
