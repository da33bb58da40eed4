"""Install step enum and the fixed step ordering."""

from enum import Enum
from typing import Optional


class InstallStep(str, Enum):
    """Install lifecycle steps.

    Order is fixed:
    runtime → openclaw → config → credentials → daemon → health → complete

    Critical steps (runtime, config, credentials, complete) abort the run on
    failure. Non-critical steps (openclaw, daemon, health) are logged and
    bypassed.
    """

    RUNTIME = "runtime"
    OPENCLAW = "openclaw"
    CONFIG = "config"
    CREDENTIALS = "credentials"
    DAEMON = "daemon"
    HEALTH = "health"
    COMPLETE = "complete"


INSTALL_STEP_ORDER: tuple[InstallStep, ...] = (
    InstallStep.RUNTIME,
    InstallStep.OPENCLAW,
    InstallStep.CONFIG,
    InstallStep.CREDENTIALS,
    InstallStep.DAEMON,
    InstallStep.HEALTH,
    InstallStep.COMPLETE,
)

NON_CRITICAL_STEPS: frozenset[InstallStep] = frozenset(
    {InstallStep.OPENCLAW, InstallStep.DAEMON, InstallStep.HEALTH}
)

_SUCCESSORS: dict[InstallStep, Optional[InstallStep]] = {
    step: (INSTALL_STEP_ORDER[idx + 1] if idx + 1 < len(INSTALL_STEP_ORDER) else None)
    for idx, step in enumerate(INSTALL_STEP_ORDER)
}


def next_step(current: Optional[InstallStep]) -> Optional[InstallStep]:
    """Return the step after ``current``.

    ``None`` as input means nothing has run yet, so the first step is returned.
    ``None`` as output means ``current`` was the terminal step.
    """
    if current is None:
        return INSTALL_STEP_ORDER[0]
    return _SUCCESSORS[InstallStep(current)]


def is_critical(step: InstallStep) -> bool:
    return step not in NON_CRITICAL_STEPS


def step_progress(step: InstallStep) -> int:
    """Percentage of the install reached once ``step`` finishes."""
    idx = INSTALL_STEP_ORDER.index(step)
    return int(((idx + 1) / len(INSTALL_STEP_ORDER)) * 100)


class ProgressStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
