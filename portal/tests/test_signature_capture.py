import base64

import pytest

from portal.app.core.errors import InvalidSignatureError
from portal.app.services.signature import DATA_URL_PREFIX, SignatureCapture, to_data_url
from portal.tests.helpers import PNG_SIGNATURE


def test_png_bytes_become_a_data_url():
    url = to_data_url(PNG_SIGNATURE)

    assert url.startswith(DATA_URL_PREFIX)
    assert base64.b64decode(url[len(DATA_URL_PREFIX):]) == PNG_SIGNATURE


def test_data_url_is_accepted_as_is():
    url = DATA_URL_PREFIX + base64.b64encode(PNG_SIGNATURE).decode("ascii")

    assert to_data_url(url) == url


@pytest.mark.parametrize(
    "value",
    [
        b"",
        b"GIF89a....",
        b"\x89PNG\r\n\x1a\n",
        "data:image/jpeg;base64,AAAA",
        DATA_URL_PREFIX + "not base64!",
        12345,
    ],
)
def test_invalid_signatures_are_rejected(value):
    with pytest.raises(InvalidSignatureError):
        to_data_url(value)


def test_listeners_see_every_change():
    capture = SignatureCapture()
    seen = []
    capture.subscribe(seen.append)

    capture.draw(PNG_SIGNATURE)
    capture.clear()

    assert seen[0].startswith(DATA_URL_PREFIX)
    assert seen[1] is None
    assert capture.is_empty is True


def test_invalid_draw_keeps_previous_signature():
    capture = SignatureCapture()
    capture.draw(PNG_SIGNATURE)

    with pytest.raises(InvalidSignatureError):
        capture.draw(b"not a png")

    assert capture.is_empty is False
