"""Unit tests for ProgressPublisher and the SSE stream."""

import json

import pytest

from installer.api.sse import format_sse_event, stream_progress
from installer.models.progress import ProgressEvent
from installer.models.steps import ProgressStatus
from installer.services.progress import ProgressPublisher


@pytest.mark.unit
class TestProgressPublisher:
    """Test ProgressPublisher fan-out."""

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners_receive_events(self):
        """Test both sync and async listeners get every event."""
        publisher = ProgressPublisher()
        received = []

        async def async_listener(event):
            received.append(("async", event.step))

        publisher.subscribe(lambda e: received.append(("sync", e.step)))
        publisher.subscribe(async_listener)

        await publisher.emit("runtime", ProgressStatus.RUNNING, "Scanning")

        assert received == [("sync", "runtime"), ("async", "runtime")]
        assert publisher.latest.message == "Scanning"

    @pytest.mark.asyncio
    async def test_failing_listener_is_isolated(self):
        """Test one failing listener does not stop the others."""
        publisher = ProgressPublisher()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        publisher.subscribe(broken)
        publisher.subscribe(received.append)

        await publisher.emit("config", ProgressStatus.COMPLETED, "done", 42)

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        """Test an unsubscribed listener gets no more events."""
        publisher = ProgressPublisher()
        received = []
        unsubscribe = publisher.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        await publisher.emit("config", ProgressStatus.RUNNING, "x")

        assert received == []

    @pytest.mark.asyncio
    async def test_full_stream_drops_events_instead_of_blocking(self):
        """Test a full stream queue drops events rather than blocking publish."""
        publisher = ProgressPublisher(stream_queue_size=1)
        queue = publisher.open_stream()

        await publisher.emit("a", ProgressStatus.RUNNING, "first")
        await publisher.emit("b", ProgressStatus.RUNNING, "second")

        assert queue.qsize() == 1
        assert queue.get_nowait().message == "first"
        publisher.close_stream(queue)

    def test_terminal_statuses(self):
        """Test which statuses are terminal."""
        done = ProgressEvent(step="x", status=ProgressStatus.COMPLETED, message="")
        running = ProgressEvent(step="x", status=ProgressStatus.RUNNING, message="")
        assert done.is_terminal is True
        assert running.is_terminal is False


@pytest.mark.unit
class TestSSEStream:
    """Test SSE framing and the progress stream generator."""

    def test_format(self):
        """Test event and data lines are framed with a blank line."""
        assert format_sse_event(event="progress", data_json="{}") == "event: progress\ndata: {}\n\n"

    @pytest.mark.asyncio
    async def test_stream_yields_connected_then_events(self):
        """Test the stream opens with a connected event, then progress."""
        publisher = ProgressPublisher()

        async def connected():
            return False

        stream = stream_progress(publisher, connected, keepalive_sec=5)

        first = await stream.__anext__()
        assert first.startswith(b"event: connected\n")

        await publisher.emit("health", ProgressStatus.FAILED, "gateway down", 71)
        second = (await stream.__anext__()).decode("utf-8")

        assert second.startswith("event: progress\n")
        payload = json.loads(second.split("data: ", 1)[1].strip())
        assert payload == {
            "step": "health",
            "status": "failed",
            "message": "gateway down",
            "progress": 71,
        }

        await stream.aclose()
        assert publisher._streams == set()

    @pytest.mark.asyncio
    async def test_keepalive_on_silence(self):
        """Test a keepalive comment is sent after silence."""
        publisher = ProgressPublisher()

        async def connected():
            return False

        stream = stream_progress(publisher, connected, keepalive_sec=0.01)
        await stream.__anext__()

        assert await stream.__anext__() == b": keepalive\n\n"
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_stream_ends_on_disconnect(self):
        """Test the stream stops when the client disconnects."""
        publisher = ProgressPublisher()

        async def disconnected():
            return True

        chunks = [chunk async for chunk in stream_progress(publisher, disconnected)]

        assert len(chunks) == 1
        assert publisher._streams == set()
