"""
Geolocation capture primitive.

Wraps a device-location provider behind the same small state surface
the signing page renders: loading, coordinates, error. The capture never
requests a location by itself; the signing controller decides when
(only after explicit consent).
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol
from urllib.parse import urlsplit

import anyio
from pydantic import BaseModel, ConfigDict, Field

from portal.app.core import messages
from portal.app.core.config import Settings
from portal.app.core.errors import GeolocationError

logger = logging.getLogger("portal.geolocation")


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy_m: Optional[float] = None

    model_config = ConfigDict(frozen=True)


class PositionOptions(BaseModel):
    high_accuracy: bool = True
    timeout: float = Field(15.0, gt=0)
    maximum_age: float = Field(0.0, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PositionOptions":
        return cls(
            high_accuracy=settings.geolocation_high_accuracy,
            timeout=settings.geolocation_timeout_seconds,
            maximum_age=settings.geolocation_maximum_age_seconds,
        )


class GeolocationProvider(Protocol):
    """
    Device location source.

    Implementations raise GeolocationError with the device API code on
    denial or failure. They do not need to enforce ``options.timeout``;
    the capture does.
    """

    async def current_position(self, options: PositionOptions) -> Coordinates:
        ...


class FixedGeolocationProvider:
    """Serves configured coordinates (kiosks and fixed signing sites)."""

    def __init__(self, latitude: float, longitude: float) -> None:
        self._coordinates = Coordinates(latitude=latitude, longitude=longitude)

    async def current_position(self, options: PositionOptions) -> Coordinates:
        return self._coordinates


class UnavailableGeolocationProvider:
    """Used when no location source is configured."""

    async def current_position(self, options: PositionOptions) -> Coordinates:
        raise GeolocationError(GeolocationError.POSITION_UNAVAILABLE)


def provider_from_settings(settings: Settings) -> GeolocationProvider:
    if settings.fixed_latitude is not None and settings.fixed_longitude is not None:
        return FixedGeolocationProvider(
            settings.fixed_latitude,
            settings.fixed_longitude,
        )
    return UnavailableGeolocationProvider()


def is_secure_origin(url: str) -> bool:
    """Device location is only available to https pages and localhost."""
    parts = urlsplit(url)
    if parts.scheme == "https":
        return True
    return parts.hostname in {"localhost", "127.0.0.1", "::1"}


_ERROR_MESSAGES = {
    GeolocationError.PERMISSION_DENIED: messages.LOCATION_PERMISSION_DENIED,
    GeolocationError.POSITION_UNAVAILABLE: messages.LOCATION_POSITION_UNAVAILABLE,
    GeolocationError.TIMEOUT: messages.LOCATION_TIMEOUT,
}


def localized_geolocation_message(code: int) -> str:
    return _ERROR_MESSAGES.get(code, messages.LOCATION_UNAVAILABLE)


class GeolocationCapture:
    """
    Tri-state location holder: loading, has_location, error.

    Once a location is acquired it is kept for the lifetime of the
    capture and never requested again.
    """

    def __init__(
        self,
        provider: GeolocationProvider,
        options: Optional[PositionOptions] = None,
    ) -> None:
        self._provider = provider
        self.options = options or PositionOptions()

        self.loading = False
        self.latitude: Optional[float] = None
        self.longitude: Optional[float] = None
        self.error: Optional[str] = None
        self.requests_made = 0

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if not self.has_location:
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)

    def reset_error(self) -> None:
        self.error = None

    async def get_location(self) -> Coordinates:
        """
        Request the current position once.

        Raises GeolocationError (with a localized message) on denial,
        unavailability or timeout. Never retries.
        """
        if self.has_location:
            return self.coordinates

        if self.loading:
            raise RuntimeError("location request already in flight")

        self.loading = True
        self.error = None
        self.requests_made += 1

        try:
            with anyio.fail_after(self.options.timeout):
                coords = await self._provider.current_position(self.options)
        except TimeoutError as exc:
            failure = GeolocationError(
                GeolocationError.TIMEOUT,
                localized_geolocation_message(GeolocationError.TIMEOUT),
            )
            self._fail(failure)
            raise failure from exc
        except GeolocationError as exc:
            failure = GeolocationError(
                exc.code,
                localized_geolocation_message(exc.code),
            )
            self._fail(failure)
            raise failure from exc
        finally:
            self.loading = False

        self.latitude = coords.latitude
        self.longitude = coords.longitude

        logger.info(
            "geolocation_acquired",
            extra={"high_accuracy": self.options.high_accuracy},
        )
        return coords

    def _fail(self, failure: GeolocationError) -> None:
        self.error = failure.message
        logger.info(
            "geolocation_failed",
            extra={"code": failure.code},
        )
