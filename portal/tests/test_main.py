import logging

import httpx
import pytest

from portal.app.main import get_app_version, open_portal
from portal.tests.helpers import make_settings

pytestmark = pytest.mark.anyio


async def test_open_portal_shares_one_client_and_closes_it():
    def handler(request):
        return httpx.Response(200, json={"ip": "198.51.100.4"})

    async with open_portal(make_settings(), transport=httpx.MockTransport(handler)) as portal:
        client = portal.http_client
        assert portal.api.client is client
        assert client.headers["User-Agent"] == "signing-portal/1.0"
        assert await portal.public_ip() == "198.51.100.4"

        signing = portal.signing_flow("link-tenant")
        verification = portal.verification()
        assert signing.session_id != verification.session_id

    assert client.is_closed is True


async def test_open_portal_logs_startup_and_shutdown(caplog):
    caplog.set_level(logging.INFO, logger="portal")

    async with open_portal(make_settings(), transport=httpx.MockTransport(lambda r: httpx.Response(204))):
        pass

    messages = [record.getMessage() for record in caplog.records]
    assert "portal_startup" in messages
    assert "portal_shutdown" in messages


async def test_handoff_store_follows_settings(tmp_path):
    async with open_portal(
        make_settings(handoff_path=tmp_path / "geo.json", handoff_max_age_seconds=60),
        transport=httpx.MockTransport(lambda r: httpx.Response(204)),
    ) as portal:
        assert portal.handoff.path == tmp_path / "geo.json"

    async with open_portal(
        make_settings(),
        transport=httpx.MockTransport(lambda r: httpx.Response(204)),
    ) as portal:
        assert portal.handoff is None


def test_app_version_is_resolved():
    assert get_app_version()
