"""Integration tests for API routes (routes.py + main.py)."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from installer.errors import ReadError
from installer.main import create_app
from installer.models.checkpoint import Checkpoint
from installer.models.services import DaemonStatus
from installer.models.steps import InstallStep, ProgressStatus
from installer.services.container import build_context


@pytest.fixture
def app(settings, services):
    with patch("installer.main.setup_logger") as mock_log, patch(
        "installer.main.build_context",
        side_effect=lambda s: build_context(s, services=services),
    ):
        mock_log.return_value = MagicMock()
        yield create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


def _seed_checkpoint(settings, step, error=None):
    settings.checkpoint_path.parent.mkdir(parents=True, exist_ok=True)
    cp = Checkpoint(step=step, version=settings.openclaw_version, error=error)
    settings.checkpoint_path.write_text(json.dumps(cp.to_json_dict()), encoding="utf-8")


@pytest.mark.unit
class TestRoot:
    """Test GET /."""

    def test_root(self, client):
        """Test root endpoint returns service info."""
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "openclaw-installer"


@pytest.mark.unit
class TestInstallRoute:
    """Test POST /api/v1.0/install."""

    def test_install_runs_in_background_and_checkpoints(self, client, services):
        """Test install runs as a background task and leaves a checkpoint."""
        response = client.post(
            "/api/v1.0/install",
            json={"installMethod": "npm", "auth": {"apifyToken": "tok"}},
        )

        assert response.status_code == 200
        assert response.json() == {"code": 200, "msg": "success", "data": None}
        services.credentials.store.assert_awaited_once_with("apify", "api-token", "tok")

        checkpoint = client.get("/api/v1.0/checkpoint").json()
        assert checkpoint["code"] == 200
        assert checkpoint["data"]["step"] == "complete"

        progress = client.get("/api/v1.0/progress").json()
        assert progress["code"] == 200
        assert progress["data"]["message"] == "Installation completed successfully"

    def test_install_refused_while_running(self, client, app):
        """Test install returns code 409 while another install runs."""
        app.state.ctx.orchestrator._running = True

        response = client.post("/api/v1.0/install", json={})

        assert response.json() == {
            "code": 409,
            "msg": "INSTALL_IN_PROGRESS: installation already running",
        }

    def test_invalid_method_rejected(self, client):
        """Test an unknown install method fails validation."""
        response = client.post("/api/v1.0/install", json={"installMethod": "brew"})

        assert response.status_code == 422

    def test_critical_failure_surfaces_in_progress(self, client, services):
        """Test a critical failure shows as code 500 on GET /progress."""
        services.runtime.resolve = AsyncMock(side_effect=RuntimeError("node not found"))

        client.post("/api/v1.0/install", json={})

        progress = client.get("/api/v1.0/progress").json()
        assert progress["code"] == 500
        assert progress["data"]["step"] == "runtime"
        assert progress["data"]["status"] == ProgressStatus.FAILED.value

        checkpoint = client.get("/api/v1.0/checkpoint").json()["data"]
        assert checkpoint["step"] == "runtime"
        assert checkpoint["error"] == "node not found"


@pytest.mark.unit
class TestCheckpointRoute:
    """Test GET /api/v1.0/checkpoint."""

    def test_no_checkpoint(self, client):
        """Test data is null when there is no checkpoint."""
        response = client.get("/api/v1.0/checkpoint")

        assert response.json() == {"code": 200, "msg": "success", "data": None}

    def test_seeded_checkpoint(self, settings, app):
        """Test an existing checkpoint is returned as JSON."""
        _seed_checkpoint(settings, InstallStep.CONFIG)

        with TestClient(app) as c:
            data = c.get("/api/v1.0/checkpoint").json()["data"]

        assert data["step"] == "config"
        assert "completedAt" in data

    def test_unreadable_checkpoint(self, client, app):
        """Test a checkpoint read error returns code 500 with the error text."""
        # Arrange
        failing = AsyncMock(side_effect=ReadError("install-checkpoint.json", "EIO"))

        # Act
        with patch.object(app.state.ctx.checkpoints, "get_checkpoint", failing):
            body = client.get("/api/v1.0/checkpoint").json()

        # Assert
        assert body == {
            "code": 500,
            "msg": "READ_FAILED: failed to read install-checkpoint.json: EIO",
        }


@pytest.mark.unit
class TestProgressRoute:
    """Test GET /api/v1.0/progress."""

    def test_no_progress_yet(self, client):
        """Test data is null before any event."""
        assert client.get("/api/v1.0/progress").json() == {
            "code": 200,
            "msg": "success",
            "data": None,
        }


@pytest.mark.unit
class TestRepairRoute:
    """Test POST /api/v1.0/repair."""

    def test_repair_report(self, settings, app):
        """Test a healthy repair returns code 200 and the report."""
        _seed_checkpoint(settings, InstallStep.COMPLETE)

        with TestClient(app) as c:
            body = c.post("/api/v1.0/repair").json()

        assert body["code"] == 200
        assert body["data"]["overallSuccess"] is True
        assert len(body["data"]["steps"]) == 10

    def test_repair_failure_code(self, client, services):
        """Test failures past the tolerance return code 500."""
        services.daemon.get_status = AsyncMock(return_value=DaemonStatus(running=False))
        services.daemon.restart = AsyncMock(side_effect=RuntimeError("no"))

        body = client.post("/api/v1.0/repair").json()

        assert body["code"] == 500
        assert body["data"]["overallSuccess"] is False

    def test_repair_refused_during_install(self, client, app):
        """Test repair returns code 409 while an install runs."""
        app.state.ctx.orchestrator._running = True

        assert client.post("/api/v1.0/repair").json()["code"] == 409
