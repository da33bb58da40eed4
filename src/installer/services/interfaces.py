"""Collaborator contracts consumed by the orchestrator and repair runner.

Concrete implementations live next to this module; tests substitute fakes.
All collaborators are constructed once at startup and passed around in a
ServiceBundle.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from installer.models.services import DaemonStatus, InstallMethod, RuntimeInfo

ProgressCallback = Callable[[str], Any]


class RuntimeResolverProtocol(Protocol):
    async def resolve(self) -> RuntimeInfo:
        """Locate the runtime; raise if none is usable."""
        ...


class PackageInstallerProtocol(Protocol):
    async def install(
        self, method: InstallMethod, on_progress: Optional[ProgressCallback] = None
    ) -> None: ...

    async def is_installed(self) -> bool: ...


class ConfigCompilerProtocol(Protocol):
    async def get_current_config(self) -> Optional[dict]: ...

    async def apply(self, partial_config: dict) -> dict: ...


class CredentialStoreProtocol(Protocol):
    async def store(self, service: str, key: str, value: str) -> None: ...

    async def list_entries(self) -> list[dict]: ...


class DaemonManagerProtocol(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def restart(self) -> None: ...

    async def get_status(self) -> DaemonStatus: ...

    async def is_running(self) -> bool: ...

    async def install_service(self) -> None: ...

    async def uninstall_service(self) -> None: ...


class HealthCheckerProtocol(Protocol):
    async def evaluate(self) -> bool: ...

    async def is_running(self) -> bool: ...

    async def check_gateway(self) -> bool: ...


@dataclass
class ServiceBundle:
    """Explicit dependency bundle handed to the orchestrator and repair runner."""

    runtime: RuntimeResolverProtocol
    packages: PackageInstallerProtocol
    config: ConfigCompilerProtocol
    credentials: CredentialStoreProtocol
    daemon: DaemonManagerProtocol
    health: HealthCheckerProtocol
