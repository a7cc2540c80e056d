import logging

import httpx

from contextlib import asynccontextmanager
from importlib.metadata import version, PackageNotFoundError
from typing import AsyncIterator, Optional

from portal.app.core.config import Settings
from portal.app.core.logging_config import configure_logging
from portal.app.controllers.signing_flow import Navigator, SigningFlowController
from portal.app.controllers.verification import (
    ContractVerificationController,
    VerificationController,
)
from portal.app.events import PortalEventEmitter
from portal.app.services.api_client import PortalApiClient
from portal.app.services.enrichment import lookup_public_ip
from portal.app.services.geolocation import GeolocationCapture
from portal.app.services.handoff import GeolocationHandoffStore
from portal.app.services.query_cache import QueryCache
from portal.app.services.signature import SignatureCapture

logger = logging.getLogger("portal.main")


def get_app_version() -> str:
    """
    Resolve application version deterministically.

    Falls back to the source version when the distribution is not
    installed.
    """
    try:
        return version("signing-portal")
    except PackageNotFoundError:
        return "1.0.0"


class Portal:
    """
    Shared resources of a running portal and the factory for its page
    controllers.

    One HTTP client and one query cache are shared by every controller
    handed out; each controller owns its own flow state.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
    ) -> None:
        self.settings = settings
        self.http_client = http_client
        self.api = PortalApiClient(http_client, settings)
        self.cache = QueryCache()
        self.handoff = (
            GeolocationHandoffStore(
                settings.handoff_path,
                settings.handoff_max_age_seconds,
            )
            if settings.handoff_path is not None
            else None
        )

    def signing_flow(
        self,
        link_token: str,
        *,
        geolocation: Optional[GeolocationCapture] = None,
        signature: Optional[SignatureCapture] = None,
        emitter: Optional[PortalEventEmitter] = None,
        navigator: Optional[Navigator] = None,
    ) -> SigningFlowController:
        return SigningFlowController(
            link_token=link_token,
            api=self.api,
            settings=self.settings,
            geolocation=geolocation,
            signature=signature,
            emitter=emitter,
            navigator=navigator,
            cache=self.cache,
            handoff=self.handoff,
        )

    def verification(
        self,
        *,
        emitter: Optional[PortalEventEmitter] = None,
    ) -> VerificationController:
        return VerificationController(
            api=self.api,
            settings=self.settings,
            emitter=emitter,
            cache=self.cache,
        )

    def contract_verification(
        self,
        *,
        emitter: Optional[PortalEventEmitter] = None,
    ) -> ContractVerificationController:
        return ContractVerificationController(
            api=self.api,
            settings=self.settings,
            emitter=emitter,
        )

    async def public_ip(self) -> str:
        return await lookup_public_ip(self.http_client, self.settings)


@asynccontextmanager
async def open_portal(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[Portal]:
    """
    Portal lifespan manager.

    Guarantees:
    - Fail-fast startup if configuration is invalid
    - One pre-allocated HTTP client shared by all controllers
    - The client is closed on exit, even on error

    ``transport`` replaces the network transport (tests, in-process
    APIs).
    """
    if settings is None:
        try:
            settings = Settings()
        except Exception:
            logger.exception("invalid_portal_configuration")
            raise

    configure_logging(settings.log_level)

    logger.info(
        "portal_startup",
        extra={
            "version": get_app_version(),
            "api_url": settings.api_base,
        },
    )

    http_client = httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(
            timeout=settings.request_timeout_seconds,
            connect=settings.connect_timeout_seconds,
        ),
        headers={
            "User-Agent": settings.user_agent,
            "Accept": "application/json",
        },
    )

    try:
        yield Portal(settings, http_client)
    finally:
        logger.info("portal_shutdown")

        # Idempotent shutdown
        try:
            await http_client.aclose()
        except Exception:
            logger.warning("http_client_shutdown_failed")
