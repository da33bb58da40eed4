"""Global pytest fixtures and configuration."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from installer.models.services import DaemonStatus, RuntimeInfo, RuntimeType  # noqa: E402
from installer.models.settings import InstallerSettings  # noqa: E402
from installer.services.durable_writer import DurableWriter  # noqa: E402
from installer.services.interfaces import ServiceBundle  # noqa: E402


@pytest.fixture
def temp_dir(tmp_path):
    """Create a temporary directory for test files."""
    yield tmp_path


@pytest.fixture
def fast_writer():
    """DurableWriter with near-zero retry delays."""
    return DurableWriter(lock_min_backoff=0.001, lock_max_backoff=0.005, rename_max_jitter=0.0)


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary data directory."""
    return InstallerSettings(data_dir=tmp_path / "data", log_level="DEBUG")


def make_services() -> ServiceBundle:
    """All-healthy collaborator fakes; tests override individual calls."""
    runtime = MagicMock()
    runtime.resolve = AsyncMock(
        return_value=RuntimeInfo(
            type=RuntimeType.SYSTEM, path="/usr/bin/node", version="v22.3.0", verified=True
        )
    )

    packages = MagicMock()
    packages.install = AsyncMock()
    packages.is_installed = AsyncMock(return_value=True)

    config = MagicMock()
    config.apply = AsyncMock(return_value={"gateway": {"mode": "local"}})
    config.get_current_config = AsyncMock(return_value={"gateway": {"mode": "local"}})

    credentials = MagicMock()
    credentials.store = AsyncMock()
    credentials.list_entries = AsyncMock(return_value=[])

    daemon = MagicMock()
    daemon.install_service = AsyncMock()
    daemon.uninstall_service = AsyncMock()
    daemon.start = AsyncMock()
    daemon.stop = AsyncMock()
    daemon.restart = AsyncMock()
    daemon.get_status = AsyncMock(return_value=DaemonStatus(running=True, pid=4242))
    daemon.is_running = AsyncMock(return_value=True)

    health = MagicMock()
    health.evaluate = AsyncMock(return_value=True)
    health.is_running = AsyncMock(return_value=True)
    health.check_gateway = AsyncMock(return_value=True)

    return ServiceBundle(
        runtime=runtime,
        packages=packages,
        config=config,
        credentials=credentials,
        daemon=daemon,
        health=health,
    )


@pytest.fixture
def services():
    return make_services()
