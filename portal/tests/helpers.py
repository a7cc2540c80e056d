from contextlib import asynccontextmanager
from typing import List, Optional

import anyio
import httpx

from portal.app.core.config import Settings
from portal.app.core.errors import GeolocationError
from portal.app.events import PortalEvent, PortalEventType
from portal.app.main import open_portal
from portal.app.services.geolocation import Coordinates, PositionOptions
from portal.tests.fixtures.fake_api import API_URL, build_fake_api

# Smallest byte string the signature capture accepts as a PNG
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"


def make_settings(**overrides) -> Settings:
    values = {
        "api_url": API_URL,
        "redirect_delay_seconds": 0,
    }
    values.update(overrides)
    return Settings(**values)


@asynccontextmanager
async def fake_portal(app=None, **settings_overrides):
    """A portal wired to the in-process fake API."""
    app = app or build_fake_api()
    transport = httpx.ASGITransport(app=app)
    async with open_portal(make_settings(**settings_overrides), transport=transport) as portal:
        yield portal


class RecordingEmitter:
    """Keeps every emitted event for assertions."""

    def __init__(self) -> None:
        self.events: List[PortalEvent] = []

    async def emit(self, event: PortalEvent) -> None:
        self.events.append(event)

    def types(self) -> List[PortalEventType]:
        return [e.event_type for e in self.events]

    def notifications(self, level: Optional[str] = None) -> List[str]:
        return [
            e.details["message"]
            for e in self.events
            if e.event_type is PortalEventType.NOTIFICATION
            and (level is None or e.details["level"] == level)
        ]


class ExplodingEmitter:
    """Emitter whose transport is down."""

    async def emit(self, event: PortalEvent) -> None:
        raise ConnectionError("event sink unavailable")


class FakeGeolocationProvider:
    """
    Scripted device location.

    Each call pops the next scripted outcome (Coordinates or
    GeolocationError). When ``release`` is set, calls wait for it first;
    ``started`` fires as soon as a call arrives.
    """

    def __init__(self, *outcomes, release: Optional[anyio.Event] = None) -> None:
        self._outcomes = list(outcomes)
        self.release = release
        self.started = anyio.Event()
        self.calls: List[PositionOptions] = []

    async def current_position(self, options: PositionOptions) -> Coordinates:
        self.calls.append(options)
        self.started.set()
        if self.release is not None:
            await self.release.wait()
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, GeolocationError):
            raise outcome
        return outcome


class HangingGeolocationProvider:
    """Never answers; the capture timeout must fire."""

    async def current_position(self, options: PositionOptions) -> Coordinates:
        await anyio.sleep_forever()


SAO_PAULO = Coordinates(latitude=-23.5, longitude=-46.6)
