"""In-process progress publisher for install events."""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from installer.models.progress import ProgressEvent
from installer.models.steps import ProgressStatus

ProgressListener = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class ProgressPublisher:
    """Fans progress events out to listeners and SSE subscribers.

    Delivery is best-effort: a listener that raises is logged and skipped, and
    never affects the orchestrator. The latest event is kept for GET /progress.
    """

    def __init__(self, stream_queue_size: int = 256):
        self.logger = logging.getLogger("installer.progress")
        self._listeners: list[ProgressListener] = []
        self._streams: set[asyncio.Queue] = set()
        self._stream_queue_size = stream_queue_size
        self._latest: Optional[ProgressEvent] = None

    @property
    def latest(self) -> Optional[ProgressEvent]:
        return self._latest

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a sync or async callback.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def open_stream(self) -> asyncio.Queue:
        """Create a queue that receives every subsequent event."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._stream_queue_size)
        self._streams.add(queue)
        return queue

    def close_stream(self, queue: asyncio.Queue) -> None:
        self._streams.discard(queue)

    async def publish(self, event: ProgressEvent) -> None:
        self._latest = event
        self.logger.debug(
            f"Progress: step={event.step}, status={event.status.value}, message={event.message}"
        )

        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.warning(f"Progress listener {listener!r} failed: {e}")

        for queue in list(self._streams):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                self.logger.warning("Progress stream subscriber is not keeping up, dropping event")

    async def emit(
        self,
        step: str,
        status: ProgressStatus,
        message: str,
        progress: Optional[int] = None,
    ) -> None:
        await self.publish(
            ProgressEvent(step=step, status=status, message=message, progress=progress)
        )
