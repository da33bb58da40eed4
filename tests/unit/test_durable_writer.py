"""Unit tests for DurableWriter and FileLock."""

import asyncio
import os
from unittest.mock import AsyncMock, patch

import pytest

from installer.errors import (
    AtomicRenameError,
    LockError,
    NotFoundError,
    PermissionDeniedError,
    ReadError,
    WriteError,
)
from installer.services.durable_writer import DurableWriter, FileLock, read_file, write_durable


def _stray_files(directory):
    return [p.name for p in directory.iterdir() if p.name.startswith(".tmp-")]


@pytest.mark.unit
class TestDurableWrite:
    """Write path: creation, replacement, crash safety."""

    @pytest.mark.asyncio
    async def test_creates_missing_file_and_parents(self, tmp_path, fast_writer):
        """Test a first write creates the file and its parents."""
        target = tmp_path / "a" / "b" / "state.json"

        await fast_writer.write(target, '{"ok": true}')

        assert target.read_text(encoding="utf-8") == '{"ok": true}'

    @pytest.mark.asyncio
    async def test_replaces_existing_file_without_leftovers(self, tmp_path, fast_writer):
        """Test replacing a file leaves no temp files behind."""
        target = tmp_path / "state.json"
        target.write_text("v1", encoding="utf-8")

        await fast_writer.write(target, "v2")

        assert target.read_text(encoding="utf-8") == "v2"
        assert _stray_files(tmp_path) == []

    @pytest.mark.asyncio
    async def test_writes_bytes(self, tmp_path, fast_writer):
        """Test bytes content is written unchanged."""
        target = tmp_path / "blob.bin"
        target.write_bytes(b"old")

        await fast_writer.write(target, b"\x00\x01new")

        assert target.read_bytes() == b"\x00\x01new"

    @pytest.mark.asyncio
    async def test_crash_before_rename_keeps_old_content(self, tmp_path, fast_writer):
        """A failure between temp write and rename leaves v1 intact."""
        target = tmp_path / "state.json"
        await fast_writer.write(target, "v1")

        with patch(
            "installer.services.durable_writer.os.replace",
            side_effect=OSError("simulated crash"),
        ):
            with pytest.raises(WriteError) as exc_info:
                await fast_writer.write(target, "v2")

        assert target.read_text(encoding="utf-8") == "v1"
        assert "WRITE_FAILED" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, OSError)
        assert _stray_files(tmp_path) == []

    @pytest.mark.asyncio
    async def test_cancel_before_rename_removes_temp_file(self, tmp_path, fast_writer):
        """Test cancellation between temp write and rename leaves no temp file."""
        # Arrange
        target = tmp_path / "state.json"
        await fast_writer.write(target, "v1")
        cancelled = AsyncMock(side_effect=asyncio.CancelledError())

        # Act
        with patch.object(fast_writer, "_atomic_rename", cancelled):
            with pytest.raises(asyncio.CancelledError):
                await fast_writer.write(target, "v2")

        # Assert
        cancelled.assert_awaited_once()
        assert target.read_text(encoding="utf-8") == "v1"
        assert _stray_files(tmp_path) == []
        lock = FileLock(target)
        assert lock.try_acquire() is True
        lock.release()

    @pytest.mark.asyncio
    async def test_crash_during_temp_write_keeps_old_content(self, tmp_path, fast_writer):
        """Test a failed temp write leaves the target untouched."""
        target = tmp_path / "state.json"
        target.write_text("v1", encoding="utf-8")

        with patch.object(
            DurableWriter, "_write_and_sync", side_effect=OSError("disk full")
        ):
            with pytest.raises(WriteError):
                await fast_writer.write(target, "v2")

        assert target.read_text(encoding="utf-8") == "v1"

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, tmp_path, fast_writer):
        """Test the lock is released when the write fails."""
        target = tmp_path / "state.json"
        target.write_text("v1", encoding="utf-8")

        with patch(
            "installer.services.durable_writer.os.replace", side_effect=OSError("boom")
        ):
            with pytest.raises(WriteError):
                await fast_writer.write(target, "v2")

        lock = FileLock(target)
        assert lock.try_acquire() is True
        lock.release()

    @pytest.mark.asyncio
    async def test_mkdir_failure_is_write_error(self, tmp_path, fast_writer):
        """Test an uncreatable parent directory raises WriteError."""
        blocker = tmp_path / "file"
        blocker.write_text("x")

        with pytest.raises(WriteError):
            await fast_writer.write(blocker / "child.json", "data")

    @pytest.mark.asyncio
    async def test_module_level_helpers(self, tmp_path):
        """Test write_durable and read_file use the default writer."""
        target = tmp_path / "helper.txt"

        await write_durable(target, "hello")

        assert await read_file(target) == "hello"


@pytest.mark.unit
class TestLocking:
    """Lock acquisition and serialization."""

    @pytest.mark.asyncio
    async def test_lock_contention_raises_lock_error(self, tmp_path, fast_writer):
        """Test a held lock raises LockError once attempts run out."""
        target = tmp_path / "state.json"
        target.write_text("v1", encoding="utf-8")
        holder = FileLock(target)
        assert holder.try_acquire()

        try:
            with pytest.raises(LockError) as exc_info:
                await fast_writer.write(target, "v2")
        finally:
            holder.release()

        assert "LOCK_FAILED" in str(exc_info.value)
        assert target.read_text(encoding="utf-8") == "v1"

    @pytest.mark.asyncio
    async def test_retries_until_lock_is_released(self, tmp_path):
        """Test the writer retries while another holder releases the lock."""
        writer = DurableWriter(lock_attempts=5, lock_min_backoff=0.01, lock_max_backoff=0.02)
        target = tmp_path / "state.json"
        target.write_text("v1", encoding="utf-8")
        holder = FileLock(target)
        assert holder.try_acquire()

        async def release_later():
            await asyncio.sleep(0.015)
            holder.release()

        await asyncio.gather(writer.write(target, "v2"), release_later())

        assert target.read_text(encoding="utf-8") == "v2"

    @pytest.mark.asyncio
    async def test_concurrent_writers_serialize(self, tmp_path):
        """Test concurrent writes to one file all succeed in turn."""
        writer = DurableWriter(lock_attempts=100, lock_min_backoff=0.001, lock_max_backoff=0.01)
        target = tmp_path / "state.json"
        target.write_text("initial", encoding="utf-8")
        payloads = [f"payload-{i}" * 100 for i in range(5)]

        await asyncio.gather(*(writer.write(target, p) for p in payloads))

        assert target.read_text(encoding="utf-8") in payloads
        assert _stray_files(tmp_path) == []

    def test_lock_file_is_sidecar(self, tmp_path):
        """Test the lock lives next to the target file."""
        lock = FileLock(tmp_path / "state.json")
        assert lock.lock_path == tmp_path / "state.json.lock"
        assert lock.held is False

    def test_second_handle_is_excluded(self, tmp_path):
        """Test a second handle cannot take a held lock."""
        first = FileLock(tmp_path / "x.json")
        second = FileLock(tmp_path / "x.json")

        assert first.try_acquire()
        assert second.try_acquire() is False
        first.release()
        assert second.try_acquire() is True
        second.release()


@pytest.mark.unit
class TestWindowsRename:
    """Rename retry and copy fallback with Windows semantics forced on."""

    @pytest.fixture
    def win_writer(self):
        """Writer with Windows rename semantics and no jitter."""
        return DurableWriter(
            is_windows=True, lock_min_backoff=0.001, rename_max_jitter=0.0
        )

    @pytest.mark.asyncio
    async def test_retries_transient_sharing_violation(self, tmp_path, win_writer):
        """Test rename is retried on a transient sharing violation."""
        target = tmp_path / "state.json"
        target.write_text("v1", encoding="utf-8")
        real_replace = os.replace
        calls = {"n": 0}

        def flaky_replace(src, dst):
            calls["n"] += 1
            if calls["n"] < 3:
                raise PermissionError("sharing violation")
            real_replace(src, dst)

        with patch("installer.services.durable_writer.os.replace", side_effect=flaky_replace):
            await win_writer.write(target, "v2")

        assert calls["n"] == 3
        assert target.read_text(encoding="utf-8") == "v2"

    @pytest.mark.asyncio
    async def test_falls_back_to_copy(self, tmp_path, win_writer):
        """Test rename falls back to copy when retries are exhausted."""
        target = tmp_path / "state.json"
        target.write_text("v1", encoding="utf-8")

        with patch(
            "installer.services.durable_writer.os.replace",
            side_effect=PermissionError("locked by scanner"),
        ) as mock_replace:
            await win_writer.write(target, "v2")

        assert mock_replace.call_count == DurableWriter.RENAME_RETRIES
        assert target.read_text(encoding="utf-8") == "v2"
        assert _stray_files(tmp_path) == []

    @pytest.mark.asyncio
    async def test_fallback_failure_raises_atomic_rename_error(self, tmp_path, win_writer):
        """Test AtomicRenameError when the copy fallback also fails."""
        target = tmp_path / "state.json"
        target.write_text("v1", encoding="utf-8")

        with patch(
            "installer.services.durable_writer.os.replace",
            side_effect=PermissionError("locked"),
        ), patch(
            "installer.services.durable_writer.shutil.copyfile",
            side_effect=OSError("copy failed"),
        ):
            with pytest.raises(AtomicRenameError) as exc_info:
                await win_writer.write(target, "v2")

        assert exc_info.value.code == "ATOMIC_RENAME_FAILED"
        assert isinstance(exc_info.value, WriteError)
        assert target.read_text(encoding="utf-8") == "v1"


@pytest.mark.unit
class TestRead:
    """Read path errors and content."""

    @pytest.mark.asyncio
    async def test_read_returns_content(self, tmp_path, fast_writer):
        """Test read returns UTF-8 text."""
        target = tmp_path / "f.txt"
        target.write_text("héllo", encoding="utf-8")

        assert await fast_writer.read(target) == "héllo"

    @pytest.mark.asyncio
    async def test_missing_file_is_not_found(self, tmp_path, fast_writer):
        """Test a missing file raises NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            await fast_writer.read(tmp_path / "missing.json")
        assert exc_info.value.code == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_permission_denied(self, tmp_path, fast_writer):
        """Test an unreadable file raises PermissionDeniedError."""
        target = tmp_path / "secret.json"
        target.write_text("{}")

        with patch(
            "installer.services.durable_writer.aiofiles.open",
            side_effect=PermissionError("denied"),
        ):
            with pytest.raises(PermissionDeniedError):
                await fast_writer.read(target)

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_read_error(self, tmp_path, fast_writer):
        """Test undecodable content raises ReadError."""
        target = tmp_path / "bad.txt"
        target.write_bytes(b"\xff\xfe\xfa")

        with pytest.raises(ReadError) as exc_info:
            await fast_writer.read(target)
        assert exc_info.value.code == "READ_FAILED"
