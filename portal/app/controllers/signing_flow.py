"""
Signing flow controller.

Drives one invited signer through: load package -> capture signature ->
consent + location -> (witness identity) -> submit -> redirect to the
verification page.

IMPORTANT:
The controller never sends a partial submission. The gate is recomputed
from a fresh snapshot on every read and re-checked inside ``submit``
before the network write.

Failure semantics:
- package fetch failure: terminal for this controller, never refetched
- location failure: consent is withdrawn; re-granting it retries once
- submission failure: reported, captured state kept for correction
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Union

import anyio

from portal.app.core import messages
from portal.app.core.config import Settings
from portal.app.core.errors import (
    ApiError,
    ApiUnavailableError,
    GeolocationError,
    PreconditionError,
    SigningLinkError,
    SubmissionError,
    user_message,
)
from portal.app.controllers.session import ControllerSession
from portal.app.controllers.gating import (
    SigningGate,
    can_submit,
    submit_hints,
    unmet_preconditions,
)
from portal.app.events import (
    NotificationLevel,
    PortalEventEmitter,
    PortalEventType,
)
from portal.app.schemas.signing import (
    SigningPackage,
    SigningSubmission,
    SubmissionReceipt,
)
from portal.app.services.api_client import PortalApiClient
from portal.app.services.enrichment import reverse_geocode
from portal.app.services.geolocation import (
    Coordinates,
    GeolocationCapture,
    PositionOptions,
    provider_from_settings,
)
from portal.app.services.handoff import GeolocationHandoffStore, GeolocationSnapshot
from portal.app.services.query_cache import QueryCache
from portal.app.services.signature import SignatureCapture

logger = logging.getLogger("portal.signing")

Navigator = Callable[[str], Awaitable[None]]


class LinkStatus(str, Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    READY = "ready"
    INVALID = "invalid"


class SigningFlowController(ControllerSession):
    def __init__(
        self,
        *,
        link_token: str,
        api: PortalApiClient,
        settings: Settings,
        geolocation: Optional[GeolocationCapture] = None,
        signature: Optional[SignatureCapture] = None,
        emitter: Optional[PortalEventEmitter] = None,
        navigator: Optional[Navigator] = None,
        cache: Optional[QueryCache] = None,
        handoff: Optional[GeolocationHandoffStore] = None,
        session_id: Optional[str] = None,
    ) -> None:
        super().__init__(emitter=emitter, session_id=session_id)
        self.link_token = link_token

        self._api = api
        self._settings = settings
        self._navigator = navigator
        self._cache = cache
        self._handoff = handoff

        self.geolocation = geolocation or GeolocationCapture(
            provider_from_settings(settings),
            PositionOptions.from_settings(settings),
        )
        self.signature = signature or SignatureCapture()
        self.signature.subscribe(self._on_signature_changed)

        self.link_status = LinkStatus.NOT_LOADED
        self.package: Optional[SigningPackage] = None
        self.load_error: Optional[str] = None

        self.geo_consent = False
        self.location_label: Optional[str] = None
        self.witness_name = ""
        self.witness_document = ""

        self.submitting = False
        self.submission_error: Optional[str] = None
        self.receipt: Optional[SubmissionReceipt] = None
        self.redirect_path: Optional[str] = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def show_submit(self) -> bool:
        """The submit control exists only for a successfully loaded link."""
        return self.link_status is LinkStatus.READY

    @property
    def requires_witness_fields(self) -> bool:
        return self.package is not None and self.package.requires_witness_fields

    @property
    def gate(self) -> Optional[SigningGate]:
        if self.package is None:
            return None
        return SigningGate(
            signature_present=self.signature.value is not None,
            geo_consent=self.geo_consent,
            has_location=self.geolocation.has_location,
            signer_type=self.package.signer_type,
            witness_name=self.witness_name,
            witness_document=self.witness_document,
        )

    @property
    def can_submit(self) -> bool:
        gate = self.gate
        return self.show_submit and gate is not None and can_submit(gate)

    @property
    def submit_enabled(self) -> bool:
        return self.can_submit and not self.submitting and self.receipt is None

    @property
    def submit_hints(self) -> List[str]:
        gate = self.gate
        return submit_hints(gate) if gate is not None else []

    # ------------------------------------------------------------------
    # Package
    # ------------------------------------------------------------------

    async def load_package(self) -> Optional[SigningPackage]:
        """
        Fetch the signing package for this link.

        A failed fetch is terminal: the link status becomes INVALID and
        later calls return None without touching the network. A call
        made while the fetch is in flight also returns None.
        """
        if self.link_status in (LinkStatus.INVALID, LinkStatus.LOADING):
            return None
        if self.link_status is LinkStatus.READY:
            return self.package

        cache_key = ("signing-data", self.link_token)
        cached = self._cache.get(cache_key) if self._cache is not None else None
        if cached is not None:
            self._accept_package(cached)
            return cached

        self.link_status = LinkStatus.LOADING

        try:
            package = await self._api.get_signing_package(self.link_token)
        except (ApiError, ApiUnavailableError) as exc:
            if not self._alive:
                return None

            self.link_status = LinkStatus.INVALID
            self.load_error = (
                exc.server_message if isinstance(exc, ApiError) else None
            ) or messages.LINK_INVALID

            logger.info(
                "signing_link_rejected",
                extra={
                    "link_token": self.link_token,
                    "error_type": type(exc).__name__,
                    "status_code": getattr(exc, "status_code", None),
                },
            )
            await self._emit(
                PortalEventType.PACKAGE_REJECTED,
                {"message": self.load_error},
            )
            return None

        if not self._alive:
            return None

        if self._cache is not None:
            self._cache.set(cache_key, package)

        self._accept_package(package)
        await self._emit(
            PortalEventType.PACKAGE_LOADED,
            {
                "signer_type": package.signer_type.value,
                "contract_token": package.contract_token,
            },
        )
        return package

    def _accept_package(self, package: SigningPackage) -> None:
        self.package = package
        self.link_status = LinkStatus.READY
        logger.info(
            "signing_package_loaded",
            extra={
                "link_token": self.link_token,
                "signer_type": package.signer_type.value,
            },
        )

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    async def set_geo_consent(self, consent: bool) -> None:
        """
        Consent toggle handler.

        Granting consent with no location and no request in flight
        issues exactly one location request. Withdrawing it clears a
        previous location error so the next grant can try again.
        """
        if not consent:
            self.geo_consent = False
            self.geolocation.reset_error()
            return

        if self.geo_consent:
            return

        self.geo_consent = True

        if self.geolocation.loading:
            return

        if self.geolocation.has_location:
            # acquired while consent was withdrawn and never used
            if self.location_label is None:
                await self._enrich_location(self.geolocation.coordinates)
            return

        await self._request_location()

    def set_signature(self, value: Union[bytes, str, None]) -> None:
        if value is None:
            self.signature.clear()
        else:
            self.signature.draw(value)

    def set_witness_name(self, value: str) -> None:
        self.witness_name = value
        self.submission_error = None

    def set_witness_document(self, value: str) -> None:
        self.witness_document = value
        self.submission_error = None

    def _on_signature_changed(self, value: Optional[str]) -> None:
        self.submission_error = None

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    async def _request_location(self) -> None:
        await self._emit(PortalEventType.GEOLOCATION_REQUESTED)

        try:
            coords = await self.geolocation.get_location()
        except GeolocationError as exc:
            if not self._alive:
                return

            # re-granting consent is the only retry path
            self.geo_consent = False

            await self._emit(
                PortalEventType.GEOLOCATION_FAILED,
                {"code": exc.code, "message": exc.message},
            )
            await self._notify(NotificationLevel.ERROR, messages.LOCATION_UNAVAILABLE)
            return

        if not self._alive:
            return

        await self._emit(PortalEventType.GEOLOCATION_ACQUIRED)

        if not self.geo_consent:
            logger.info(
                "geolocation_discarded_without_consent",
                extra={"link_token": self.link_token},
            )
            return

        await self._enrich_location(coords)

    async def _enrich_location(self, coords: Coordinates) -> None:
        if self._settings.reverse_geocoding_enabled:
            label = await reverse_geocode(
                self._api.client,
                self._settings,
                coords.latitude,
                coords.longitude,
            )
        else:
            label = messages.format_coordinates(coords.latitude, coords.longitude)

        if not self._alive or not self.geo_consent:
            return

        self.location_label = label

        if self._handoff is None:
            return

        try:
            self._handoff.save(
                GeolocationSnapshot(
                    latitude=coords.latitude,
                    longitude=coords.longitude,
                    address=label,
                )
            )
        except OSError as exc:
            logger.warning(
                "geolocation_handoff_write_failed",
                extra={
                    "path": str(self._handoff.path),
                    "error_type": type(exc).__name__,
                },
            )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> SubmissionReceipt:
        """
        Re-check every precondition, submit, then redirect.

        Raises:
            SigningLinkError: the link failed to load.
            PreconditionError: a local precondition is unmet; nothing
                was sent.
            SubmissionError: the API rejected the submission; all
                captured state is kept.
        """
        if self.link_status is LinkStatus.INVALID:
            raise SigningLinkError(self.load_error or messages.LINK_INVALID)

        if self.package is None:
            raise PreconditionError([], messages.PACKAGE_NOT_LOADED)
        if self.receipt is not None:
            raise PreconditionError([], messages.ALREADY_SUBMITTED)
        if self.submitting:
            raise PreconditionError([], messages.SUBMISSION_IN_PROGRESS)

        gate = self.gate
        unmet = unmet_preconditions(gate)
        if unmet:
            message = "; ".join(p.error for p in unmet)
            logger.info(
                "signing_preconditions_unmet",
                extra={
                    "link_token": self.link_token,
                    "unmet": [p.value for p in unmet],
                },
            )
            await self._notify(NotificationLevel.ERROR, message)
            raise PreconditionError(unmet, message)

        submission = SigningSubmission.build(
            signer_type=self.package.signer_type,
            signature=self.signature.value,
            latitude=self.geolocation.latitude,
            longitude=self.geolocation.longitude,
            geo_consent=self.geo_consent,
            witness_name=self.witness_name,
            witness_document=self.witness_document,
        )

        self.submitting = True
        self.submission_error = None

        try:
            receipt = await self._api.submit_signature(self.link_token, submission)
        except (ApiError, ApiUnavailableError) as exc:
            message = user_message(exc, messages.SIGNATURE_SUBMIT_FAILED)

            logger.warning(
                "signature_submission_failed",
                extra={
                    "link_token": self.link_token,
                    "error_type": type(exc).__name__,
                    "status_code": getattr(exc, "status_code", None),
                },
            )

            if self._alive:
                self.submission_error = message
                await self._emit(
                    PortalEventType.SIGNATURE_REJECTED,
                    {"message": message},
                )
                await self._notify(NotificationLevel.ERROR, message)

            raise SubmissionError(
                message,
                status_code=getattr(exc, "status_code", None),
            ) from exc
        finally:
            self.submitting = False

        if not self._alive:
            return receipt

        self.receipt = receipt

        logger.info(
            "signature_submitted",
            extra={
                "link_token": self.link_token,
                "contract_token": receipt.contract_token,
            },
        )
        await self._emit(
            PortalEventType.SIGNATURE_SUBMITTED,
            {"contract_token": receipt.contract_token},
        )
        await self._notify(NotificationLevel.SUCCESS, messages.SIGNATURE_REGISTERED)

        await anyio.sleep(self._settings.redirect_delay_seconds)

        if self._alive:
            await self._redirect(self._settings.verification_path(receipt.contract_token))

        return receipt

    async def _redirect(self, path: str) -> None:
        self.redirect_path = path
        await self._emit(PortalEventType.NAVIGATION_REQUESTED, {"path": path})
        if self._navigator is not None:
            await self._navigator(path)
