"""Server-Sent Events stream of install progress."""

import asyncio
import json
from typing import AsyncIterator, Awaitable, Callable

from installer.services.progress import ProgressPublisher


def format_sse_event(*, event: str, data_json: str) -> str:
    return f"event: {event}\n" f"data: {data_json}\n\n"


async def stream_progress(
    publisher: ProgressPublisher,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_sec: float = 15.0,
) -> AsyncIterator[bytes]:
    """Yield a ``connected`` event, then every published progress event.

    A comment line is sent after ``keepalive_sec`` of silence so proxies keep
    the connection open. Ends when the client disconnects.
    """
    queue = publisher.open_stream()
    try:
        yield format_sse_event(
            event="connected", data_json=json.dumps({"type": "connected"})
        ).encode("utf-8")

        while True:
            if await is_disconnected():
                return
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive_sec)
            except asyncio.TimeoutError:
                yield b": keepalive\n\n"
                continue
            yield format_sse_event(
                event="progress", data_json=event.model_dump_json(exclude_none=True)
            ).encode("utf-8")
    finally:
        publisher.close_stream(queue)
