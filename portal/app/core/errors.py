"""
Exception hierarchy for the signing portal.

Every exception carries a message that is safe to show to the end user.
Remote failures keep the server-provided ``message`` whenever the API
sent one.
"""

from __future__ import annotations

from typing import Optional, Sequence


class PortalError(Exception):
    """Base class for all portal errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ----------------------------------------------------------------------
# Transport / API
# ----------------------------------------------------------------------

class ApiError(PortalError):
    """
    The API answered with an HTTP error status.

    ``server_message`` is the body's ``message`` field when present.
    """

    def __init__(
        self,
        status_code: int,
        server_message: Optional[str],
        *,
        url: str = "",
    ) -> None:
        super().__init__(server_message or f"HTTP {status_code}")
        self.status_code = status_code
        self.server_message = server_message
        self.url = url


class ApiUnavailableError(PortalError):
    """The API could not be reached (DNS, connect, read timeout, ...)."""


# ----------------------------------------------------------------------
# Signing flow
# ----------------------------------------------------------------------

class SigningLinkError(PortalError):
    """The signing link is invalid, expired or already used. Terminal."""


class PreconditionError(PortalError):
    """
    A local precondition of the signature submission is not met.

    Raised before any network call is made.
    """

    def __init__(self, unmet: Sequence[object], message: str) -> None:
        super().__init__(message)
        self.unmet = tuple(unmet)


class SubmissionError(PortalError):
    """The API rejected the signature submission."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidSignatureError(PortalError, ValueError):
    """Captured signature data is empty or not a PNG image."""


# ----------------------------------------------------------------------
# Geolocation
# ----------------------------------------------------------------------

class GeolocationError(PortalError):
    """
    Location could not be obtained.

    ``code`` follows the device API: 1 permission denied,
    2 position unavailable, 3 timeout.
    """

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(message or f"geolocation error {code}")
        self.code = code


def user_message(exc: Exception, fallback: str) -> str:
    """
    Message to show for a failed remote call.

    The server's own ``message`` wins; transport failures have their own
    text; anything else gets ``fallback``.
    """
    if isinstance(exc, ApiError):
        return exc.server_message or fallback
    if isinstance(exc, ApiUnavailableError):
        return exc.message
    return fallback
