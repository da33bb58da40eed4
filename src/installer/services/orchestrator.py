"""Checkpointed, resumable install orchestrator.

Steps run strictly in order:
runtime → openclaw → config → credentials → daemon → health → complete

After every step attempt the checkpoint is overwritten with that step (plus
the error on failure). A crash mid-step leaves the checkpoint at the previous
step, so the next ``install()`` retries the interrupted step from scratch.
Every step handler must therefore be safe to repeat.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from installer.api.models import InstallRequest
from installer.errors import InstallInProgressError, StepFailure
from installer.models.checkpoint import Checkpoint, utc_now
from installer.models.steps import (
    INSTALL_STEP_ORDER,
    InstallStep,
    ProgressStatus,
    is_critical,
    next_step,
    step_progress,
)
from installer.services.checkpoint_store import CheckpointStore
from installer.services.durable_writer import DurableWriter
from installer.services.interfaces import ServiceBundle
from installer.services.progress import ProgressPublisher


@dataclass(frozen=True)
class StepOk:
    step: InstallStep


@dataclass(frozen=True)
class StepErr:
    step: InstallStep
    message: str
    critical: bool
    cause: Optional[BaseException] = None


StepOutcome = Union[StepOk, StepErr]


@dataclass
class InstallResult:
    ran_steps: list[InstallStep] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    already_complete: bool = False
    message: str = ""


def resume_point(checkpoint: Optional[Checkpoint]) -> Optional[InstallStep]:
    """Step to start from, or None if the installation is already complete.

    A critical step recorded with an error is attempted again rather than
    skipped; any other checkpoint advances to its successor.
    """
    if checkpoint is None:
        return INSTALL_STEP_ORDER[0]
    if checkpoint.failed and is_critical(checkpoint.step):
        return checkpoint.step
    return next_step(checkpoint.step)


def summarize(warnings: list[str]) -> str:
    if warnings:
        return (
            f"Installation completed with {len(warnings)} warning(s): "
            f"{'; '.join(warnings)}"
        )
    return "Installation completed successfully"


class InstallOrchestrator:
    """Sequences install steps, records checkpoints, classifies failures.

    The step logic itself belongs to the collaborators in the ServiceBundle.
    """

    def __init__(
        self,
        services: ServiceBundle,
        checkpoints: CheckpointStore,
        publisher: Optional[ProgressPublisher] = None,
        writer: Optional[DurableWriter] = None,
        summary_path: Optional[Path] = None,
    ):
        """Initialize orchestrator.

        Args:
            services: Collaborators invoked by the steps
            checkpoints: Store for the resume marker
            publisher: Progress side channel (creates a private one if None)
            writer: DurableWriter for the install summary record
            summary_path: Where the complete step records the finished install
        """
        self.logger = logging.getLogger("installer.orchestrator")
        self.services = services
        self.checkpoints = checkpoints
        self.publisher = publisher or ProgressPublisher()
        self.writer = writer or checkpoints.writer
        self.summary_path = (
            Path(summary_path)
            if summary_path
            else checkpoints.path.parent.parent / "install-state.json"
        )
        self._running = False
        self._handlers: dict[InstallStep, Callable[[InstallRequest], Awaitable[None]]] = {
            InstallStep.RUNTIME: self._step_runtime,
            InstallStep.OPENCLAW: self._step_openclaw,
            InstallStep.CONFIG: self._step_config,
            InstallStep.CREDENTIALS: self._step_credentials,
            InstallStep.DAEMON: self._step_daemon,
            InstallStep.HEALTH: self._step_health,
            InstallStep.COMPLETE: self._step_complete,
        }

    @property
    def is_running(self) -> bool:
        return self._running

    async def install(self, request: Optional[InstallRequest] = None) -> InstallResult:
        """Run the install flow, resuming from the last checkpoint.

        Args:
            request: Install options (defaults apply if None)

        Returns:
            InstallResult listing executed steps and non-critical warnings

        Raises:
            InstallInProgressError: If another install is running in this process
            StepFailure: If a critical step fails (checkpoint points at that step)
            LockError, WriteError: If a checkpoint cannot be persisted
        """
        if self._running:
            raise InstallInProgressError()
        self._running = True
        try:
            return await self._install(request or InstallRequest())
        finally:
            self._running = False

    async def _install(self, request: InstallRequest) -> InstallResult:
        self.logger.info("Starting OpenClaw installation flow")
        checkpoint = await self.checkpoints.get_checkpoint()
        start = resume_point(checkpoint)

        if start is None:
            self.logger.info("Installation already complete, skipping")
            message = "Installation already complete"
            await self._emit(InstallStep.COMPLETE, ProgressStatus.COMPLETED, message, 100)
            return InstallResult(already_complete=True, message=message)

        start_idx = INSTALL_STEP_ORDER.index(start)
        if checkpoint is not None:
            self.logger.info(
                f"Resuming from step {start.value} (checkpoint at {checkpoint.step.value})"
            )
            for done in INSTALL_STEP_ORDER[:start_idx]:
                await self._emit(
                    done, ProgressStatus.SKIPPED, f"Already done: {done.value}", step_progress(done)
                )

        result = InstallResult()
        for step in INSTALL_STEP_ORDER[start_idx:]:
            outcome = await self._execute_step(step, request, result.warnings)
            result.ran_steps.append(step)

            if isinstance(outcome, StepErr):
                if outcome.critical:
                    self.logger.error(
                        f"OpenClaw installation failed at critical step {step.value}: "
                        f"{outcome.message}"
                    )
                    raise StepFailure(step.value, outcome.message, critical=True) from outcome.cause
                self.logger.warning(
                    f"Non-critical step {step.value} failed, continuing: {outcome.message}"
                )
                result.warnings.append(f"{step.value}: {outcome.message}")

        result.message = summarize(result.warnings)
        if result.warnings:
            self.logger.info(f"Installation completed with warnings: {result.warnings}")
        else:
            self.logger.info("OpenClaw installation completed successfully")
        return result

    async def _execute_step(
        self, step: InstallStep, request: InstallRequest, warnings: list[str]
    ) -> StepOutcome:
        base_progress = int((INSTALL_STEP_ORDER.index(step) / len(INSTALL_STEP_ORDER)) * 100)
        await self._emit(step, ProgressStatus.RUNNING, f"Executing step: {step.value}", base_progress)
        self.logger.info(f"Executing install step: {step.value}")

        try:
            await self._handlers[step](request)
        except Exception as e:
            outcome: StepOutcome = StepErr(
                step=step, message=str(e) or type(e).__name__, critical=is_critical(step), cause=e
            )
        else:
            outcome = StepOk(step=step)

        step_error = outcome.message if isinstance(outcome, StepErr) else None
        try:
            await self.checkpoints.write_checkpoint(step, step_error)
        except Exception as e:
            # The step still gets its terminal event before the write error propagates.
            self.logger.error(f"Checkpoint write failed after step {step.value}: {e}")
            await self._emit(
                step,
                ProgressStatus.FAILED,
                f"Step failed: {step.value}: checkpoint not saved: {e}",
                base_progress,
            )
            if isinstance(outcome, StepErr):
                raise e from outcome.cause
            raise

        if isinstance(outcome, StepOk):
            if step == InstallStep.COMPLETE:
                # The terminal event of the last step carries the overall summary.
                message = summarize(warnings)
            else:
                message = f"Step completed: {step.value}"
            await self._emit(step, ProgressStatus.COMPLETED, message, step_progress(step))
        else:
            await self._emit(
                step,
                ProgressStatus.FAILED,
                f"Step failed: {step.value}: {outcome.message}",
                base_progress,
            )
        return outcome

    async def _emit(
        self,
        step: InstallStep,
        status: ProgressStatus,
        message: str,
        progress: Optional[int] = None,
    ) -> None:
        try:
            await self.publisher.emit(step.value, status, message, progress)
        except Exception as e:
            self.logger.debug(f"Progress publish failed: {e}")

    def _running_note(self, step: InstallStep) -> Callable[[str], Awaitable[None]]:
        async def note(message: str) -> None:
            await self._emit(step, ProgressStatus.RUNNING, message)

        return note

    # Step handlers. Each raises on failure; classification happens above.

    async def _step_runtime(self, request: InstallRequest) -> None:
        note = self._running_note(InstallStep.RUNTIME)
        await note("Scanning for runtime...")
        runtime = await self.services.runtime.resolve()
        if not runtime.verified:
            raise RuntimeError(f"Runtime at {runtime.path} failed integrity verification")
        await note(f"Runtime {runtime.version} found at {runtime.path} ({runtime.type.value})")

    async def _step_openclaw(self, request: InstallRequest) -> None:
        await self.services.packages.install(
            request.install_method, on_progress=self._running_note(InstallStep.OPENCLAW)
        )

    async def _step_config(self, request: InstallRequest) -> None:
        note = self._running_note(InstallStep.CONFIG)
        partial = self.compile_config(request)
        await note("Writing OpenClaw configuration...")
        await self.services.config.apply(partial)
        await note(f"Gateway mode: {partial['gateway']['mode']}")

    async def _step_credentials(self, request: InstallRequest) -> None:
        note = self._running_note(InstallStep.CREDENTIALS)
        entries = self.discover_credentials(request)
        if not entries:
            await note("No external credentials provided, skipping vault")
            return

        await note(f"Storing {len(entries)} credential(s)...")
        for service, key, value in entries:
            await self.services.credentials.store(service, key, value)
            await note(f"Stored: {service}/{key}")
        self.logger.info(f"Credentials step completed: count={len(entries)}")

    async def _step_daemon(self, request: InstallRequest) -> None:
        note = self._running_note(InstallStep.DAEMON)
        daemon = self.services.daemon

        await note("Installing gateway service...")
        try:
            await daemon.install_service()
            await note("Gateway service installed")
        except Exception as e:
            self.logger.warning(f"Gateway service install returned error, trying start: {e}")

        await note("Starting gateway service...")
        try:
            await daemon.start()
        except Exception:
            status = await daemon.get_status()
            if not status.running:
                raise
            self.logger.debug("Gateway start returned an error but daemon is already running")

        status = await daemon.get_status()
        if status.running:
            await note(f"Gateway running (pid {status.pid})")
        else:
            raise RuntimeError("Gateway daemon is not running after start")

    async def _step_health(self, request: InstallRequest) -> None:
        note = self._running_note(InstallStep.HEALTH)
        await note("Checking gateway health...")
        if not await self.services.health.evaluate():
            raise RuntimeError("Health check failed: gateway not responding")
        await note("Health check passed")

    async def _step_complete(self, request: InstallRequest) -> None:
        summary = {
            "version": self.checkpoints.version,
            "installMethod": request.install_method.value,
            "completedAt": utc_now().isoformat(),
        }
        await self.writer.write(self.summary_path, json.dumps(summary, indent=2) + "\n")
        self.logger.info("Installation marked complete")

    @staticmethod
    def compile_config(request: InstallRequest) -> dict:
        """Translate install options into the partial OpenClaw config to apply."""
        config: dict = {"gateway": {"mode": "local", "bind": "loopback"}}
        if request.identity:
            config["identity"] = dict(request.identity)
        if request.models:
            config["agents"] = {"defaults": {"model": dict(request.models)}}

        if request.intelligence.anthropic_key:
            config["auth"] = {"provider": "anthropic"}
        elif request.intelligence.openai_key:
            config["auth"] = {"provider": "openai"}

        channels = {name: {"enabled": True} for name, on in request.modules.items() if on}
        if channels:
            config["channels"] = channels
        return config

    @staticmethod
    def discover_credentials(request: InstallRequest) -> list[tuple[str, str, str]]:
        """Secrets found in the request as (service, key, value)."""
        found = [
            ("gologin", "api-token", request.auth.gologin_token),
            ("apify", "api-token", request.auth.apify_token),
            ("telegram", "bot-token", request.auth.telegram_token),
            ("openai", "api-key", request.intelligence.openai_key),
            ("anthropic", "api-key", request.intelligence.anthropic_key),
        ]
        return [(service, key, value) for service, key, value in found if value]
