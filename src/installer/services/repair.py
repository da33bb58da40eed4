"""Diagnostic repair runner.

Runs a fixed list of independent checks against the same collaborators the
orchestrator uses. A check that raises becomes a failed result; the runner
itself never raises.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from installer.models.repair import RepairReport, RepairStepResult
from installer.services.checkpoint_store import CheckpointStore
from installer.services.interfaces import ServiceBundle

SUGGESTED_ACTION = "Review logs and retry"
DAEMON_CHECK = "Verify daemon process"


@dataclass
class RepairRun:
    """State of a single repair() call, shared by its checks."""

    started: float
    results: list[RepairStepResult] = field(default_factory=list)


class RepairRunner:
    """Executes the repair checks in order and aggregates a RepairReport."""

    def __init__(
        self,
        services: ServiceBundle,
        checkpoints: CheckpointStore,
        failure_tolerance: int = 1,
    ):
        """Initialize repair runner.

        Args:
            services: Collaborators to diagnose
            checkpoints: Read-only access to the install checkpoint
            failure_tolerance: Failed checks allowed while still reporting
                overall success
        """
        self.logger = logging.getLogger("installer.repair")
        self.services = services
        self.checkpoints = checkpoints
        self.failure_tolerance = failure_tolerance
        self._checks: list[tuple[str, Callable[[RepairRun], Awaitable[str]]]] = [
            ("Verify checkpoint file", self._check_checkpoint),
            ("Verify runtime binary", self._check_runtime),
            ("Verify OpenClaw packages", self._check_packages),
            ("Verify config schema", self._check_config),
            ("Verify credentials", self._check_credentials),
            (DAEMON_CHECK, self._check_daemon),
            ("Verify health", self._check_health),
            ("Verify gateway connectivity", self._check_gateway),
            ("Attempt auto-fix for failures", self._auto_fix),
            ("Generate repair report", self._summary),
        ]

    @property
    def check_names(self) -> list[str]:
        return [name for name, _ in self._checks]

    async def repair(self) -> RepairReport:
        """Run every check and build the report.

        Returns:
            RepairReport with one result per check, in order
        """
        self.logger.info("Starting OpenClaw repair flow")
        run = RepairRun(started=time.monotonic())

        for name, check in self._checks:
            run.results.append(await self._run_check(name, check, run))

        failures = sum(1 for r in run.results if not r.passed)
        report = RepairReport(
            overall_success=failures <= self.failure_tolerance,
            steps=run.results,
        )
        self.logger.info(
            f"Repair flow completed: overall_success={report.overall_success}, "
            f"failed={failures}/{len(run.results)}"
        )
        return report

    async def _run_check(
        self,
        name: str,
        check: Callable[[RepairRun], Awaitable[str]],
        run: RepairRun,
    ) -> RepairStepResult:
        try:
            message = await check(run)
        except Exception as e:
            message = str(e) or type(e).__name__
            self.logger.warning(f"Repair check failed: {name}: {message}")
            return RepairStepResult(
                step=name, passed=False, message=message, suggested_action=SUGGESTED_ACTION
            )
        self.logger.debug(f"Repair check passed: {name}: {message}")
        return RepairStepResult(step=name, passed=True, message=message)

    async def _check_checkpoint(self, run: RepairRun) -> str:
        checkpoint = await self.checkpoints.get_checkpoint()
        if checkpoint is None:
            raise RuntimeError("No checkpoint found, installation may not have been started")
        if checkpoint.failed:
            raise RuntimeError(
                f"Last attempted step {checkpoint.step.value} failed: {checkpoint.error}"
            )
        return f"Checkpoint at step: {checkpoint.step.value}"

    async def _check_runtime(self, run: RepairRun) -> str:
        runtime = await self.services.runtime.resolve()
        if not runtime.verified:
            raise RuntimeError(f"Runtime at {runtime.path} failed integrity verification")
        return f"Runtime found: {runtime.type.value} at {runtime.path} ({runtime.version})"

    async def _check_packages(self, run: RepairRun) -> str:
        if not await self.services.packages.is_installed():
            raise RuntimeError("OpenClaw package is not installed")
        return "OpenClaw packages present"

    async def _check_config(self, run: RepairRun) -> str:
        config = await self.services.config.get_current_config()
        if not config:
            raise RuntimeError("No OpenClaw config file found")
        if not isinstance(config.get("gateway"), dict):
            raise RuntimeError("Config is missing the gateway section")
        return "Config is valid"

    async def _check_credentials(self, run: RepairRun) -> str:
        entries = await self.services.credentials.list_entries()
        return f"Credential vault accessible ({len(entries)} entr{'y' if len(entries) == 1 else 'ies'})"

    async def _check_daemon(self, run: RepairRun) -> str:
        status = await self.services.daemon.get_status()
        if not status.running:
            raise RuntimeError("Daemon is not running")
        return f"Daemon running with PID {status.pid}"

    async def _check_health(self, run: RepairRun) -> str:
        if not await self.services.health.is_running():
            raise RuntimeError("Health check failed: daemon not responding")
        return "Health check passed"

    async def _check_gateway(self, run: RepairRun) -> str:
        if not await self.services.health.check_gateway():
            raise RuntimeError("Gateway is not reachable")
        return "Gateway connectivity check passed"

    async def _auto_fix(self, run: RepairRun) -> str:
        failed = [r for r in run.results if not r.passed]
        if not failed:
            return "No failures to fix"

        if any(r.step == DAEMON_CHECK for r in failed):
            self.logger.info("Auto-fix: restarting gateway daemon")
            try:
                await self.services.daemon.restart()
            except Exception as e:
                raise RuntimeError("Auto-fix: daemon restart failed") from e
            return "Daemon restarted successfully"

        return f"{len(failed)} issue(s) require manual intervention"

    async def _summary(self, run: RepairRun) -> str:
        elapsed_ms = int((time.monotonic() - run.started) * 1000)
        return f"Repair completed in {elapsed_ms}ms"
