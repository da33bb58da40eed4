"""Durable, atomic single-file writes with cross-process write locking.

Write protocol for an existing target:
    1. lock <target>.lock (exclusive, non-blocking, bounded retry)
    2. write .tmp-<random> next to the target, flush + fsync
    3. os.replace(tmp, target)
    4. unlock

The only visible mutation of the target is the rename, so readers always see
either the complete old content or the complete new content. Readers never
take the lock; writers serialize only against each other.
"""

import asyncio
import logging
import os
import random
import secrets
import shutil
import sys
from pathlib import Path
from typing import Optional, Union

import aiofiles

from installer.errors import (
    AtomicRenameError,
    LockError,
    NotFoundError,
    PermissionDeniedError,
    ReadError,
    WriteError,
)

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

PathLike = Union[str, Path]
Content = Union[str, bytes]


class FileLock:
    """Exclusive lock held on a sidecar ``<target>.lock`` file.

    Uses ``fcntl.flock`` on POSIX and ``msvcrt.locking`` on Windows. Both are
    tied to the open file description, so two handles in the same process
    exclude each other just like two processes do. The lock is dropped by the
    OS if the holder dies.
    """

    def __init__(self, target: Path):
        self.lock_path = target.with_name(f"{target.name}.lock")
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def try_acquire(self) -> bool:
        """Attempt to take the lock once without blocking.

        Returns:
            True if acquired, False if another holder has it

        Raises:
            OSError: If the lock file cannot be opened or locked for any other reason
        """
        if self._fd is not None:
            return True

        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            if sys.platform == "win32":
                msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
            else:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except (BlockingIOError, PermissionError):
            os.close(fd)
            return False
        except OSError:
            os.close(fd)
            raise

        self._fd = fd
        return True

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            if sys.platform == "win32":
                os.lseek(fd, 0, os.SEEK_SET)
                msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)


class DurableWriter:
    """Atomic writer/reader for small state files (checkpoints, configs, vaults)."""

    LOCK_ATTEMPTS = 5
    LOCK_MIN_BACKOFF = 0.1  # seconds
    LOCK_MAX_BACKOFF = 1.0
    RENAME_RETRIES = 3
    RENAME_MAX_JITTER = 2.0

    def __init__(
        self,
        is_windows: Optional[bool] = None,
        lock_attempts: Optional[int] = None,
        lock_min_backoff: Optional[float] = None,
        lock_max_backoff: Optional[float] = None,
        rename_retries: Optional[int] = None,
        rename_max_jitter: Optional[float] = None,
    ):
        """Initialize durable writer.

        Args:
            is_windows: Force Windows rename semantics (default: detect platform)
            lock_attempts: Lock acquisition attempts before LockError
            lock_min_backoff: First retry delay in seconds (doubles per attempt)
            lock_max_backoff: Upper bound for the retry delay
            rename_retries: Rename attempts on Windows before the copy fallback
            rename_max_jitter: Max random delay between Windows rename attempts
        """
        self.logger = logging.getLogger("installer.durable_writer")
        self.is_windows = sys.platform == "win32" if is_windows is None else is_windows
        self.lock_attempts = lock_attempts or self.LOCK_ATTEMPTS
        self.lock_min_backoff = (
            self.LOCK_MIN_BACKOFF if lock_min_backoff is None else lock_min_backoff
        )
        self.lock_max_backoff = (
            self.LOCK_MAX_BACKOFF if lock_max_backoff is None else lock_max_backoff
        )
        self.rename_retries = rename_retries or self.RENAME_RETRIES
        self.rename_max_jitter = (
            self.RENAME_MAX_JITTER if rename_max_jitter is None else rename_max_jitter
        )

    async def write(self, path: PathLike, content: Content) -> None:
        """Write ``content`` to ``path`` so readers never see a partial file.

        Args:
            path: Target file path (parent directories are created)
            content: Text (written as UTF-8) or bytes

        Raises:
            LockError: If the write lock could not be acquired (nothing written)
            AtomicRenameError: If every rename strategy failed
            WriteError: For any other failure (target left untouched)
        """
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(str(target), f"cannot create parent directory: {e}") from e

        # A file that has never existed has no readers to protect.
        if not target.exists():
            try:
                await self._write_and_sync(target, content)
            except OSError as e:
                raise WriteError(str(target), str(e)) from e
            self.logger.debug(f"Created {target} ({len(content)} bytes)")
            return

        lock = await self._acquire_lock(target)
        tmp_path = self._tmp_path(target)
        try:
            await self._write_and_sync(tmp_path, content)
            await self._atomic_rename(tmp_path, target)
            self.logger.debug(f"Atomically replaced {target} ({len(content)} bytes)")
        except WriteError:
            self._remove_quietly(tmp_path)
            raise
        except Exception as e:
            self._remove_quietly(tmp_path)
            raise WriteError(str(target), str(e)) from e
        except BaseException:
            # Cancelled between temp write and rename.
            self._remove_quietly(tmp_path)
            raise
        finally:
            self._release_lock(lock)

    async def read(self, path: PathLike) -> str:
        """Read a UTF-8 file without locking.

        Raises:
            NotFoundError: If the file does not exist
            PermissionDeniedError: If the file is not readable
            ReadError: For any other I/O or decoding failure
        """
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise NotFoundError(str(path)) from e
        except PermissionError as e:
            raise PermissionDeniedError(str(path)) from e
        except (OSError, UnicodeDecodeError) as e:
            raise ReadError(str(path), str(e)) from e

    @staticmethod
    def _tmp_path(target: Path) -> Path:
        # Same directory as the target so the rename never crosses filesystems.
        return target.with_name(f".tmp-{secrets.token_hex(8)}")

    async def _write_and_sync(self, path: Path, content: Content) -> None:
        if isinstance(content, bytes):
            handle = aiofiles.open(path, "wb")
        else:
            handle = aiofiles.open(path, "w", encoding="utf-8", newline="")
        async with handle as f:
            await f.write(content)
            await f.flush()
            os.fsync(f.fileno())

    async def _acquire_lock(self, target: Path) -> FileLock:
        lock = FileLock(target)
        delay = self.lock_min_backoff
        last_error = "lock is held by another writer"

        for attempt in range(1, self.lock_attempts + 1):
            try:
                if lock.try_acquire():
                    self.logger.debug(f"Acquired write lock {lock.lock_path} (attempt {attempt})")
                    return lock
            except OSError as e:
                last_error = str(e)

            if attempt < self.lock_attempts:
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.lock_max_backoff)

        self.logger.warning(
            f"Giving up on write lock {lock.lock_path} after {self.lock_attempts} attempts"
        )
        raise LockError(str(target), f"{last_error} (after {self.lock_attempts} attempts)")

    def _release_lock(self, lock: FileLock) -> None:
        try:
            lock.release()
        except OSError as e:
            self.logger.warning(f"Failed to release write lock {lock.lock_path}: {e}")

    async def _atomic_rename(self, tmp_path: Path, target: Path) -> None:
        """Move ``tmp_path`` onto ``target``.

        On Windows, antivirus and indexer handles can make the rename fail
        transiently with a sharing violation (PermissionError). Those are
        retried with random jitter, then a copy + delete-temp fallback is used.
        """
        if not self.is_windows:
            os.replace(tmp_path, target)
            return

        for attempt in range(1, self.rename_retries + 1):
            try:
                os.replace(tmp_path, target)
                return
            except PermissionError as e:
                self.logger.warning(
                    f"Rename {tmp_path.name} -> {target} blocked "
                    f"(attempt {attempt}/{self.rename_retries}): {e}"
                )
                if attempt < self.rename_retries:
                    await asyncio.sleep(random.uniform(0, self.rename_max_jitter))

        try:
            shutil.copyfile(tmp_path, target)
            os.unlink(tmp_path)
        except OSError as e:
            raise AtomicRenameError(
                str(target),
                f"rename failed after {self.rename_retries} retries and "
                f"copy fallback also failed: {e}",
            ) from e
        self.logger.warning(f"Replaced {target} using copy fallback")

    def _remove_quietly(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.debug(f"Could not remove temp file {path}: {e}")


_default_writer = DurableWriter()


async def write_durable(path: PathLike, content: Content) -> None:
    """Module-level shortcut for ``DurableWriter().write``."""
    await _default_writer.write(path, content)


async def read_file(path: PathLike) -> str:
    """Module-level shortcut for ``DurableWriter().read``."""
    return await _default_writer.read(path)
