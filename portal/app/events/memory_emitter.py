from __future__ import annotations

import asyncio
from typing import AsyncIterator

from portal.app.events.models import PortalEvent, PortalEventType
from portal.app.events.emitter import PortalEventEmitter


class MemoryQueueEventEmitter(PortalEventEmitter):
    """
    In-memory async event emitter for a single front-end consumer.

    Properties:
    - single-consumer
    - non-blocking for the controller
    - deterministic ordering
    - terminates cleanly when the controller session closes
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[PortalEvent | None] = asyncio.Queue()
        self._closed = False

    async def emit(self, event: PortalEvent) -> None:
        if self._closed:
            return

        self._queue.put_nowait(event)

        if event.event_type is PortalEventType.SESSION_CLOSED:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[PortalEvent]:
        """
        Async generator yielding emitted events in order.
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
