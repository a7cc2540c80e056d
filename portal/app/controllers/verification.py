"""
Public document verification controllers.

Three independent checks share one page: the primary token lookup, the
hash check and the PDF check. Each owns its own CheckState; none of
them blocks, cancels or resets another. Remote failures are recorded on
the state of the check that failed and never raised.

A verification outcome is one of:

    VERIFIED  - HTTP success, valid=True
    MISMATCH  - HTTP success, valid=False (a normal business result)
    ERROR     - the check could not be performed
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Generic, Mapping, Optional, TypeVar, Union
from urllib.parse import parse_qs

import anyio
from pydantic import BaseModel, ConfigDict, Field

from portal.app.core import messages
from portal.app.core.config import Settings
from portal.app.core.errors import ApiError, ApiUnavailableError, user_message
from portal.app.controllers.session import ControllerSession
from portal.app.events import NotificationLevel, PortalEventEmitter, PortalEventType
from portal.app.schemas.verification import (
    ContractRecord,
    DocumentType,
    VerificationResult,
)
from portal.app.services.api_client import PortalApiClient
from portal.app.services.query_cache import QueryCache

logger = logging.getLogger("portal.verification")

ResultT = TypeVar("ResultT")


class CheckStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class CheckOutcome(str, Enum):
    VERIFIED = "verified"
    MISMATCH = "mismatch"
    ERROR = "error"


class CheckState(Generic[ResultT]):
    """
    State of one verification check.

    ``result`` is the last successful result and survives a later
    failure. Every ``begin`` hands out a ticket; only the newest ticket
    may settle the state, so a slow earlier attempt cannot overwrite a
    newer one. ``attempts`` counts the requests actually issued.
    """

    def __init__(self) -> None:
        self.status = CheckStatus.IDLE
        self.result: Optional[ResultT] = None
        self.error: Optional[str] = None
        self.attempts = 0
        self._ticket = 0

    @property
    def pending(self) -> bool:
        return self.status is CheckStatus.PENDING

    @property
    def outcome(self) -> Optional[CheckOutcome]:
        if self.status is CheckStatus.ERROR:
            return CheckOutcome.ERROR
        if self.status is not CheckStatus.SUCCESS or self.result is None:
            return None
        return CheckOutcome.VERIFIED if _is_valid(self.result) else CheckOutcome.MISMATCH

    def begin(self) -> int:
        self.attempts += 1
        self._ticket += 1
        self.status = CheckStatus.PENDING
        self.error = None
        return self._ticket

    def is_current(self, ticket: int) -> bool:
        return ticket == self._ticket

    def succeed(self, ticket: int, result: ResultT) -> bool:
        if not self.is_current(ticket):
            return False
        self.status = CheckStatus.SUCCESS
        self.result = result
        self.error = None
        return True

    def fail(self, ticket: int, message: str) -> bool:
        if not self.is_current(ticket):
            return False
        self.status = CheckStatus.ERROR
        self.error = message
        return True

    def reject(self, message: str) -> None:
        """Record a local rejection. Supersedes any attempt in flight."""
        self._ticket += 1
        self.status = CheckStatus.ERROR
        self.error = message

    def reset(self) -> None:
        # in-flight attempts are discarded
        self._ticket += 1
        self.status = CheckStatus.IDLE
        self.result = None
        self.error = None


def _is_valid(result: object) -> bool:
    if isinstance(result, ContractRecord):
        return result.is_valid
    return bool(getattr(result, "valid", False))


class PdfUpload(BaseModel):
    """A PDF picked by the holder for re-verification."""

    filename: str = Field(..., min_length=1)
    content: bytes

    model_config = ConfigDict(frozen=True)

    @property
    def size(self) -> int:
        return len(self.content)


PdfInput = Union[PdfUpload, str, os.PathLike, None]


class _DocumentChecks(ControllerSession, ABC):
    """Hash and PDF sub-checks against the active (looked-up) token."""

    def __init__(
        self,
        *,
        api: PortalApiClient,
        settings: Settings,
        emitter: Optional[PortalEventEmitter] = None,
        session_id: Optional[str] = None,
    ) -> None:
        super().__init__(emitter=emitter, session_id=session_id)
        self._api = api
        self._settings = settings

        self.active_token: Optional[str] = None
        self.hash_check: CheckState[VerificationResult] = CheckState()
        self.pdf_check: CheckState[VerificationResult] = CheckState()

    # ------------------------------------------------------------------
    # Hash
    # ------------------------------------------------------------------

    async def verify_hash(self, hash_input: str) -> Optional[VerificationResult]:
        """
        Compare a SHA-256 hex digest with the one stored for the active
        document. Local problems fail the check without a network call.
        """
        if self.active_token is None:
            self.hash_check.reject(messages.LOOKUP_REQUIRED)
            return None

        hash_value = (hash_input or "").strip()
        if not hash_value:
            self.hash_check.reject(messages.HASH_INPUT_REQUIRED)
            return None

        token = self.active_token
        ticket = self.hash_check.begin()

        try:
            result = await self._call_hash(token, hash_value)
        except (ApiError, ApiUnavailableError) as exc:
            await self._check_failed(
                self.hash_check,
                ticket,
                exc,
                messages.HASH_CHECK_FAILED,
                check="hash",
            )
            return None

        if not self._alive:
            return result

        if self.hash_check.succeed(ticket, result):
            await self._check_completed(PortalEventType.HASH_CHECK_COMPLETED, token, result)
        return result

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    async def verify_pdf(self, file: PdfInput) -> Optional[VerificationResult]:
        """
        Upload a PDF so the server can recompute and compare its hash.

        ``file`` is a PdfUpload or a path. Missing, empty and oversized
        files fail the check without a network call.
        """
        if self.active_token is None:
            self.pdf_check.reject(messages.LOOKUP_REQUIRED)
            return None

        upload = await self._load_upload(file)
        if upload is None:
            return None

        token = self.active_token
        ticket = self.pdf_check.begin()

        try:
            result = await self._call_pdf(token, upload)
        except (ApiError, ApiUnavailableError) as exc:
            await self._check_failed(
                self.pdf_check,
                ticket,
                exc,
                messages.PDF_CHECK_FAILED,
                check="pdf",
            )
            return None

        if not self._alive:
            return result

        if self.pdf_check.succeed(ticket, result):
            await self._check_completed(PortalEventType.PDF_CHECK_COMPLETED, token, result)
        return result

    async def _load_upload(self, file: PdfInput) -> Optional[PdfUpload]:
        limit = self._settings.max_pdf_size_bytes

        if file is None:
            self.pdf_check.reject(messages.PDF_FILE_REQUIRED)
            return None

        if isinstance(file, PdfUpload):
            upload = file
        else:
            path = anyio.Path(os.fspath(file))
            if not await path.is_file():
                self.pdf_check.reject(messages.PDF_FILE_REQUIRED)
                return None
            stat = await path.stat()
            if stat.st_size > limit:
                self.pdf_check.reject(
                    messages.pdf_file_too_large(self._settings.max_pdf_size_mb)
                )
                return None
            upload = PdfUpload(filename=path.name, content=await path.read_bytes())

        if upload.size == 0:
            self.pdf_check.reject(messages.PDF_FILE_EMPTY)
            return None
        if upload.size > limit:
            self.pdf_check.reject(
                messages.pdf_file_too_large(self._settings.max_pdf_size_mb)
            )
            return None
        return upload

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reset_sub_checks(self) -> None:
        self.hash_check.reset()
        self.pdf_check.reset()

    async def _check_failed(
        self,
        state: CheckState,
        ticket: int,
        exc: Exception,
        fallback: str,
        *,
        check: str,
    ) -> None:
        message = user_message(exc, fallback)
        logger.info(
            "verification_check_failed",
            extra={
                "check": check,
                "token": self.active_token,
                "error_type": type(exc).__name__,
                "status_code": getattr(exc, "status_code", None),
            },
        )
        if not self._alive:
            return
        if state.fail(ticket, message):
            await self._notify(NotificationLevel.ERROR, message)

    async def _check_completed(
        self,
        event_type: PortalEventType,
        token: str,
        result: VerificationResult,
    ) -> None:
        outcome = CheckOutcome.VERIFIED if result.valid else CheckOutcome.MISMATCH
        logger.info(
            "verification_check_completed",
            extra={
                "event_type": event_type.value,
                "token": token,
                "outcome": outcome.value,
            },
        )
        await self._emit(
            event_type,
            {"token": token, "outcome": outcome.value, "message": result.message},
        )

    @abstractmethod
    async def _call_hash(self, token: str, hash_value: str) -> VerificationResult:
        ...

    @abstractmethod
    async def _call_pdf(self, token: str, upload: PdfUpload) -> VerificationResult:
        ...


class VerificationController(_DocumentChecks):
    """
    Verification page for every document family.

    The type hint chosen for the lookup (including AUTO, which lets the
    server detect the type from the token) is forwarded unchanged to
    the hash and PDF checks. The client never infers a type itself.
    """

    def __init__(
        self,
        *,
        api: PortalApiClient,
        settings: Settings,
        emitter: Optional[PortalEventEmitter] = None,
        cache: Optional[QueryCache] = None,
        session_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            api=api,
            settings=settings,
            emitter=emitter,
            session_id=session_id,
        )
        self._cache = cache
        self.active_type = DocumentType.AUTO
        self.lookup_check: CheckState[VerificationResult] = CheckState()

    @property
    def result(self) -> Optional[VerificationResult]:
        """Last successful lookup result."""
        return self.lookup_check.result

    async def lookup(
        self,
        token: str,
        type_hint: DocumentType = DocumentType.AUTO,
        *,
        use_cache: bool = False,
    ) -> Optional[VerificationResult]:
        """
        Look up a document by token.

        A blank token is ignored. A failure is recorded on
        ``lookup_check`` and leaves the previous result, the active
        token and the hash/PDF results untouched.
        """
        token = (token or "").strip()
        if not token:
            return None

        cache_key = ("verify-document", token, type_hint.value)
        if use_cache and self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                ticket = self.lookup_check.begin()
                await self._accept_lookup(ticket, token, type_hint, cached)
                return cached

        ticket = self.lookup_check.begin()

        try:
            result = await self._api.verify_token(token, type_hint)
        except (ApiError, ApiUnavailableError) as exc:
            message = user_message(exc, messages.LOOKUP_FAILED)
            logger.info(
                "document_lookup_failed",
                extra={
                    "token": token,
                    "type_hint": type_hint.value,
                    "error_type": type(exc).__name__,
                    "status_code": getattr(exc, "status_code", None),
                },
            )
            if self._alive and self.lookup_check.fail(ticket, message):
                await self._emit(
                    PortalEventType.LOOKUP_FAILED,
                    {"token": token, "message": message},
                )
                await self._notify(NotificationLevel.ERROR, message)
            return None

        if self._cache is not None:
            self._cache.set(cache_key, result)

        if not self._alive:
            return result

        await self._accept_lookup(ticket, token, type_hint, result)
        return result

    async def _accept_lookup(
        self,
        ticket: int,
        token: str,
        type_hint: DocumentType,
        result: VerificationResult,
    ) -> None:
        if not self.lookup_check.succeed(ticket, result):
            return

        if (token, type_hint) != (self.active_token, self.active_type):
            # hash/PDF results belong to the previous document
            self._reset_sub_checks()

        self.active_token = token
        self.active_type = type_hint

        logger.info(
            "document_lookup_completed",
            extra={
                "token": token,
                "type_hint": type_hint.value,
                "document_type": result.document_type.value if result.document_type else None,
                "valid": result.valid,
            },
        )
        await self._emit(
            PortalEventType.LOOKUP_COMPLETED,
            {
                "token": token,
                "document_type": result.document_type.value if result.document_type else None,
                "valid": result.valid,
            },
        )

    async def open(
        self,
        query: Union[str, Mapping[str, str]],
    ) -> Optional[VerificationResult]:
        """
        Query-string entry point (``?token=...&type=...``).

        Pre-fills and triggers the lookup, served from the query cache
        when possible. Without a token nothing happens. An unknown
        ``type`` falls back to AUTO.
        """
        if isinstance(query, str):
            parsed = parse_qs(query.lstrip("?"))
            params = {key: values[0] for key, values in parsed.items() if values}
        else:
            params = dict(query)

        token = params.get("token", "")
        try:
            type_hint = DocumentType(params.get("type", DocumentType.AUTO.value).upper())
        except ValueError:
            type_hint = DocumentType.AUTO

        return await self.lookup(token, type_hint, use_cache=True)

    async def _call_hash(self, token: str, hash_value: str) -> VerificationResult:
        return await self._api.verify_hash(token, hash_value, self.active_type)

    async def _call_pdf(self, token: str, upload: PdfUpload) -> VerificationResult:
        return await self._api.verify_pdf(
            token,
            upload.filename,
            upload.content,
            self.active_type,
        )


class ContractVerificationController(_DocumentChecks):
    """Legacy contract-only verification page (``/verify/{token}``)."""

    def __init__(
        self,
        *,
        api: PortalApiClient,
        settings: Settings,
        emitter: Optional[PortalEventEmitter] = None,
        session_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            api=api,
            settings=settings,
            emitter=emitter,
            session_id=session_id,
        )
        self.lookup_check: CheckState[ContractRecord] = CheckState()

    @property
    def record(self) -> Optional[ContractRecord]:
        return self.lookup_check.result

    async def lookup(self, token: str) -> Optional[ContractRecord]:
        token = (token or "").strip()
        if not token:
            return None

        ticket = self.lookup_check.begin()

        try:
            record = await self._api.verify_contract(token)
        except (ApiError, ApiUnavailableError) as exc:
            message = user_message(exc, messages.LOOKUP_FAILED)
            logger.info(
                "contract_lookup_failed",
                extra={"token": token, "error_type": type(exc).__name__},
            )
            if self._alive and self.lookup_check.fail(ticket, message):
                await self._emit(
                    PortalEventType.LOOKUP_FAILED,
                    {"token": token, "message": message},
                )
                await self._notify(NotificationLevel.ERROR, message)
            return None

        if not self._alive or not self.lookup_check.succeed(ticket, record):
            return record

        if token != self.active_token:
            self._reset_sub_checks()
        self.active_token = token

        await self._emit(
            PortalEventType.LOOKUP_COMPLETED,
            {"token": token, "status": record.status, "valid": record.is_valid},
        )
        return record

    async def _call_hash(self, token: str, hash_value: str) -> VerificationResult:
        return await self._api.validate_contract_hash(token, hash_value)

    async def _call_pdf(self, token: str, upload: PdfUpload) -> VerificationResult:
        return await self._api.validate_contract_pdf(
            token,
            upload.filename,
            upload.content,
        )
