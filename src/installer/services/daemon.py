"""Gateway daemon lifecycle via the OpenClaw CLI."""

import json
import logging
import os
import re
import signal

from installer.errors import CommandError
from installer.models.services import DaemonStatus
from installer.utils.command import run_command

_TEXT_STATUS_RE = re.compile(r"Runtime:\s*running\s*\(pid\s+(\d+)")


class DaemonManager:
    """Manages the OpenClaw gateway service.

    Delegates to ``openclaw gateway install|uninstall|start|stop|status``,
    which registers the per-user launchd / systemd --user / Windows service.
    """

    CLI_TIMEOUT = 15.0
    INSTALL_TIMEOUT = 30.0
    STOP_TIMEOUT = 10.0

    def __init__(self, openclaw_bin: str = "openclaw"):
        self.logger = logging.getLogger("installer.daemon")
        self.openclaw_bin = openclaw_bin

    async def install_service(self) -> None:
        """Register the gateway as a user service (idempotent, uses --force).

        Raises:
            CommandError: If registration fails
        """
        self.logger.info("Installing gateway service")
        await self._gateway("install", "--force", "--json", timeout=self.INSTALL_TIMEOUT)
        self.logger.info("Gateway service installed")

    async def uninstall_service(self) -> None:
        self.logger.info("Uninstalling gateway service")
        await self._gateway("uninstall", "--json", timeout=self.INSTALL_TIMEOUT)

    async def start(self) -> None:
        """Start the gateway daemon.

        Raises:
            CommandError: If the start command fails
        """
        self.logger.info("Starting gateway daemon")
        try:
            await self._gateway("start", timeout=self.CLI_TIMEOUT)
        except CommandError as e:
            self.logger.error(f"Failed to start gateway daemon: {e}")
            raise
        self.logger.info("Gateway daemon started")

    async def stop(self) -> None:
        """Stop the gateway daemon, falling back to SIGTERM on the reported PID."""
        self.logger.info("Stopping gateway daemon")
        try:
            await self._gateway("stop", timeout=self.STOP_TIMEOUT)
            self.logger.info("Gateway daemon stopped")
            return
        except CommandError as e:
            self.logger.warning(f"CLI stop failed, attempting PID-based kill: {e}")

        status = await self.get_status()
        if status.running and status.pid:
            try:
                os.kill(status.pid, signal.SIGTERM)
                self.logger.info(f"Sent SIGTERM to gateway daemon (pid {status.pid})")
            except OSError as e:
                self.logger.warning(f"Force kill of pid {status.pid} failed: {e}")

    async def restart(self) -> None:
        """Restart the gateway daemon (stop, then start).

        Raises:
            CommandError: If the start half fails
        """
        self.logger.info("Restarting gateway daemon")
        await self.stop()
        await self.start()
        self.logger.info("Gateway daemon restarted successfully")

    async def get_status(self) -> DaemonStatus:
        """Query daemon status; never raises (unknown is reported as not running)."""
        try:
            result = await self._gateway("status", "--json", timeout=self.CLI_TIMEOUT)
            try:
                parsed = json.loads(result.stdout)
                return DaemonStatus(
                    running=bool(parsed.get("running")),
                    pid=parsed.get("pid"),
                    version=parsed.get("version"),
                )
            except (json.JSONDecodeError, AttributeError):
                return self._parse_text_status(result.stdout)
        except CommandError as json_err:
            # Older CLIs have no --json flag.
            try:
                result = await self._gateway("status", timeout=self.CLI_TIMEOUT)
                return self._parse_text_status(result.stdout)
            except CommandError:
                self.logger.debug(f"Gateway status check failed: {json_err}")
                return DaemonStatus(running=False, pid=None)

    async def is_running(self) -> bool:
        status = await self.get_status()
        return status.running

    @staticmethod
    def _parse_text_status(stdout: str) -> DaemonStatus:
        """Parse lines like ``Runtime: running (pid 12345, state active)``."""
        match = _TEXT_STATUS_RE.search(stdout)
        if match:
            return DaemonStatus(running=True, pid=int(match.group(1)))
        return DaemonStatus(running=False, pid=None)

    async def _gateway(self, *args: str, timeout: float):
        return await run_command([self.openclaw_bin, "gateway", *args], timeout=timeout)
