"""In-process event channel between the orchestrator and the SSE transport.

The orchestrator only ever holds an `EventSender`; the HTTP layer owns the
matching `EventReceiver` and serializes events onto the wire. Once the
client goes away the sender is marked closed and further sends are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from schemas.events import GenerationEvent


logger = logging.getLogger(__name__)


class EventSender:
    def __init__(self, queue: asyncio.Queue[GenerationEvent | None]) -> None:
        self._queue = queue
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: GenerationEvent) -> None:
        """Queue an event; silently dropped once the channel is closed."""
        if self._closed:
            logger.debug(f"Dropping {event.event} event: channel closed")
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        """End the stream after everything already queued."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    def disconnect(self) -> None:
        """Mark the consumer as gone without waiting for queued events."""
        self._closed = True


class EventReceiver:
    def __init__(self, queue: asyncio.Queue[GenerationEvent | None]) -> None:
        self._queue = queue

    async def __aiter__(self) -> AsyncIterator[GenerationEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


def open_channel() -> tuple[EventSender, EventReceiver]:
    queue: asyncio.Queue[GenerationEvent | None] = asyncio.Queue()
    return EventSender(queue), EventReceiver(queue)
