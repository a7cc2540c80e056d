import pytest

from portal.app.core import messages
from portal.app.core.errors import GeolocationError
from portal.app.services.geolocation import (
    Coordinates,
    FixedGeolocationProvider,
    GeolocationCapture,
    PositionOptions,
    UnavailableGeolocationProvider,
    is_secure_origin,
    provider_from_settings,
)
from portal.tests.helpers import (
    SAO_PAULO,
    FakeGeolocationProvider,
    HangingGeolocationProvider,
    make_settings,
)

pytestmark = pytest.mark.anyio


async def test_capture_stores_coordinates_and_does_not_ask_twice():
    provider = FakeGeolocationProvider(SAO_PAULO)
    capture = GeolocationCapture(provider)

    assert capture.has_location is False

    first = await capture.get_location()
    second = await capture.get_location()

    assert first == second == SAO_PAULO
    assert capture.has_location is True
    assert capture.loading is False
    assert capture.requests_made == 1
    assert provider.calls == [PositionOptions()]


async def test_zero_is_a_valid_coordinate():
    capture = GeolocationCapture(
        FakeGeolocationProvider(Coordinates(latitude=0.0, longitude=0.0))
    )

    await capture.get_location()

    assert capture.has_location is True
    assert capture.coordinates == Coordinates(latitude=0.0, longitude=0.0)


@pytest.mark.parametrize(
    "code,expected",
    [
        (GeolocationError.PERMISSION_DENIED, messages.LOCATION_PERMISSION_DENIED),
        (GeolocationError.POSITION_UNAVAILABLE, messages.LOCATION_POSITION_UNAVAILABLE),
        (GeolocationError.TIMEOUT, messages.LOCATION_TIMEOUT),
        (99, messages.LOCATION_UNAVAILABLE),
    ],
)
async def test_provider_errors_are_localized(code, expected):
    capture = GeolocationCapture(FakeGeolocationProvider(GeolocationError(code)))

    with pytest.raises(GeolocationError) as exc_info:
        await capture.get_location()

    assert exc_info.value.code == code
    assert exc_info.value.message == expected
    assert capture.error == expected
    assert capture.loading is False
    assert capture.has_location is False


async def test_capture_enforces_timeout():
    capture = GeolocationCapture(
        HangingGeolocationProvider(),
        PositionOptions(timeout=0.05),
    )

    with pytest.raises(GeolocationError) as exc_info:
        await capture.get_location()

    assert exc_info.value.code == GeolocationError.TIMEOUT
    assert capture.error == messages.LOCATION_TIMEOUT


async def test_reset_error_allows_a_new_request():
    capture = GeolocationCapture(
        FakeGeolocationProvider(
            GeolocationError(GeolocationError.POSITION_UNAVAILABLE),
            SAO_PAULO,
        )
    )

    with pytest.raises(GeolocationError):
        await capture.get_location()

    capture.reset_error()
    assert capture.error is None

    await capture.get_location()
    assert capture.requests_made == 2
    assert capture.has_location is True


async def test_fixed_provider_serves_configured_site():
    settings = make_settings(fixed_latitude=-22.9068, fixed_longitude=-43.1729)
    provider = provider_from_settings(settings)

    assert isinstance(provider, FixedGeolocationProvider)

    coords = await provider.current_position(PositionOptions.from_settings(settings))
    assert coords.latitude == -22.9068
    assert coords.longitude == -43.1729


async def test_without_a_source_position_is_unavailable():
    provider = provider_from_settings(make_settings())

    assert isinstance(provider, UnavailableGeolocationProvider)

    capture = GeolocationCapture(provider)
    with pytest.raises(GeolocationError) as exc_info:
        await capture.get_location()

    assert exc_info.value.code == GeolocationError.POSITION_UNAVAILABLE


def test_position_options_follow_settings():
    options = PositionOptions.from_settings(
        make_settings(geolocation_timeout_seconds=5, geolocation_high_accuracy=False)
    )

    assert options.timeout == 5
    assert options.high_accuracy is False
    assert options.maximum_age == 0


@pytest.mark.parametrize(
    "url,secure",
    [
        ("https://portal.example.com/sign/abc", True),
        ("http://localhost:5173/sign/abc", True),
        ("http://127.0.0.1/sign/abc", True),
        ("http://portal.example.com/sign/abc", False),
    ],
)
def test_is_secure_origin(url, secure):
    assert is_secure_origin(url) is secure
