"""
Signature capture primitive.

Holds the signer's drawn signature as a PNG data URL, the format the
submission endpoint expects. Listeners are told about every change so a
cleared signature revokes submit eligibility immediately.
"""

from __future__ import annotations

import base64
import binascii
from typing import Callable, List, Optional, Union

from portal.app.core.errors import InvalidSignatureError

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
DATA_URL_PREFIX = "data:image/png;base64,"

SignatureListener = Callable[[Optional[str]], None]


def to_data_url(value: Union[bytes, str]) -> str:
    """
    Normalize raw PNG bytes or a PNG data URL into a data URL.

    Raises InvalidSignatureError for empty input, other image types or
    undecodable base64.
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        if not value.startswith(DATA_URL_PREFIX):
            raise InvalidSignatureError("Signature must be a PNG data URL")
        try:
            raw = base64.b64decode(value[len(DATA_URL_PREFIX):], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidSignatureError("Signature data is not valid base64") from exc
    else:
        raise InvalidSignatureError(
            f"Unsupported signature type: {type(value).__name__}"
        )

    if not raw.startswith(PNG_MAGIC) or len(raw) <= len(PNG_MAGIC):
        raise InvalidSignatureError("Signature is not a PNG image")

    return DATA_URL_PREFIX + base64.b64encode(raw).decode("ascii")


class SignatureCapture:
    def __init__(self) -> None:
        self._value: Optional[str] = None
        self._listeners: List[SignatureListener] = []

    @property
    def value(self) -> Optional[str]:
        return self._value

    @property
    def is_empty(self) -> bool:
        return self._value is None

    def subscribe(self, listener: SignatureListener) -> None:
        self._listeners.append(listener)

    def draw(self, value: Union[bytes, str]) -> str:
        self._value = to_data_url(value)
        self._notify()
        return self._value

    def clear(self) -> None:
        self._value = None
        self._notify()

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self._value)
