"""Health checks for the gateway daemon."""

import logging

import httpx

from installer.services.interfaces import DaemonManagerProtocol


class HealthChecker:
    """Combines daemon process state with gateway reachability."""

    def __init__(
        self,
        daemon: DaemonManagerProtocol,
        gateway_url: str = "http://127.0.0.1:18789",
        timeout: float = 5.0,
    ):
        self.logger = logging.getLogger("installer.health")
        self.daemon = daemon
        self.gateway_url = gateway_url
        self.timeout = timeout

    async def is_running(self) -> bool:
        try:
            return await self.daemon.is_running()
        except Exception as e:
            self.logger.warning(f"Daemon status query failed: {e}")
            return False

    async def check_gateway(self) -> bool:
        """True if anything answers HTTP on the gateway URL (any status code)."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.gateway_url)
            self.logger.debug(f"Gateway responded with HTTP {response.status_code}")
            return True
        except httpx.HTTPError as e:
            self.logger.info(f"Gateway at {self.gateway_url} not reachable: {e}")
            return False

    async def evaluate(self) -> bool:
        running = await self.is_running()
        reachable = await self.check_gateway() if running else False
        healthy = running and reachable
        self.logger.info(
            f"Health evaluation: daemon_running={running}, gateway_reachable={reachable}"
        )
        return healthy
