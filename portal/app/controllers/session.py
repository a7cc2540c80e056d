import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from portal.app.events import (
    NotificationLevel,
    NullEventEmitter,
    PortalEvent,
    PortalEventEmitter,
    PortalEventType,
)

logger = logging.getLogger("portal.session")


class ControllerSession:
    """
    Lifetime and event plumbing shared by the page controllers.

    After ``close()`` the controller is dead: continuations of requests
    that were in flight must check ``alive`` before touching state, and
    no further events are emitted.
    """

    def __init__(
        self,
        *,
        emitter: Optional[PortalEventEmitter] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or str(uuid4())
        self._emitter = emitter or NullEventEmitter()
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    async def close(self) -> None:
        if not self._alive:
            return
        await self._emit(PortalEventType.SESSION_CLOSED)
        self._alive = False

    async def _notify(self, level: NotificationLevel, message: str) -> None:
        await self._send(PortalEvent.notification(self.session_id, level, message))

    async def _emit(
        self,
        event_type: PortalEventType,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._send(
            PortalEvent(
                session_id=self.session_id,
                event_type=event_type,
                details=details,
            )
        )

    async def _send(self, event: PortalEvent) -> None:
        if not self._alive:
            return
        try:
            await self._emitter.emit(event)
        except Exception:
            # Fail-safe: observers never break the flow
            logger.warning(
                "event_emission_failed",
                extra={
                    "session_id": self.session_id,
                    "event_type": event.event_type.value,
                },
                exc_info=True,
            )
