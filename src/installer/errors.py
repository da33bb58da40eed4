"""Exception types raised by the installer service.

Every error carries an upper-case ``code`` that prefixes its message, e.g.
``LOCK_FAILED: could not lock /path/to/file``. Callers that only need the
category can read ``err.code``; log lines and API payloads use ``str(err)``.
"""

from typing import Optional


class InstallerError(Exception):
    """Base class for all installer errors."""

    code = "INSTALLER_ERROR"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"{self.code}: {detail}")


# Durable writer (write side)


class LockError(InstallerError):
    """Exclusive lock on the target could not be acquired; nothing was written."""

    code = "LOCK_FAILED"

    def __init__(self, path: str, detail: str):
        self.path = path
        super().__init__(f"failed to acquire lock for {path}: {detail}")


class WriteError(InstallerError):
    """Write was attempted but did not complete; the target is untouched."""

    code = "WRITE_FAILED"

    def __init__(self, path: str, detail: str):
        self.path = path
        super().__init__(f"atomic write to {path} failed: {detail}")


class AtomicRenameError(WriteError):
    """Rename retries and the copy fallback were all exhausted."""

    code = "ATOMIC_RENAME_FAILED"


# Durable writer (read side)


class ReadError(InstallerError):
    code = "READ_FAILED"

    def __init__(self, path: str, detail: str):
        self.path = path
        super().__init__(f"failed to read {path}: {detail}")


class NotFoundError(ReadError):
    code = "NOT_FOUND"

    def __init__(self, path: str):
        super().__init__(path, "file not found")


class PermissionDeniedError(ReadError):
    code = "PERMISSION_DENIED"

    def __init__(self, path: str):
        super().__init__(path, "permission denied")


# Orchestration


class StepFailure(InstallerError):
    """A collaborator failed while an install step was running."""

    code = "STEP_FAILED"

    def __init__(self, step: str, message: str, critical: bool):
        self.step = step
        self.message = message
        self.critical = critical
        super().__init__(f"{step}: {message}")


class CheckpointCorruptError(InstallerError):
    code = "CHECKPOINT_CORRUPT"


class InstallInProgressError(InstallerError):
    code = "INSTALL_IN_PROGRESS"

    def __init__(self, detail: str = "an installation is already running"):
        super().__init__(detail)


class CommandError(InstallerError):
    """External command exited non-zero, timed out, or could not be spawned."""

    code = "COMMAND_FAILED"

    def __init__(
        self,
        command: str,
        detail: str,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{command}: {detail}")
