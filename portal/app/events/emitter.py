from __future__ import annotations

from typing import Protocol

from portal.app.events.models import PortalEvent


class PortalEventEmitter(Protocol):
    """
    Sink for what a signing or verification page observes: notifications,
    navigation requests, check outcomes.

    ``ControllerSession`` swallows and logs anything ``emit`` raises, so a
    broken sink never fails a submission or a check.
    """

    async def emit(self, event: PortalEvent) -> None:
        ...


class NullEventEmitter:
    """Default sink when nothing renders the page."""

    async def emit(self, event: PortalEvent) -> None:
        return None
