import logging
from typing import Annotated, Any, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from portal.app.core.config import Settings
from portal.app.core.errors import ApiError, ApiUnavailableError
from portal.app.core import messages
from portal.app.schemas.signing import (
    SigningPackage,
    SigningSubmission,
    SubmissionReceipt,
)
from portal.app.schemas.verification import (
    ContractRecord,
    DocumentType,
    VerificationResult,
    type_query_params,
)

logger = logging.getLogger("portal.api_client")

ModelT = TypeVar("ModelT", bound=BaseModel)


def extract_error_message(response: httpx.Response) -> Optional[str]:
    """
    Pull the human-readable ``message`` out of an error body.

    The API sends either ``{"message": "..."}`` or, for validation
    failures, ``{"message": ["...", "..."]}``.
    """
    try:
        body = response.json()
    except ValueError:
        return None

    if not isinstance(body, dict):
        return None

    message = body.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    if isinstance(message, list):
        parts = [str(m).strip() for m in message if str(m).strip()]
        return "; ".join(parts) or None
    return None


class PortalApiClient:
    """
    Async client for the public (token-scoped, unauthenticated) API.

    HARD GUARANTEES:
    - never retries; a failure is reported once to the caller
    - never infers document types; ``AUTO`` simply omits ``?type=``
    - HTTP error statuses raise ApiError, transport failures raise
      ApiUnavailableError, both with a user-presentable message
    """

    def __init__(
        self,
        http_client: Annotated[
            httpx.AsyncClient,
            "Persistent HTTP client",
        ],
        settings: Annotated[
            Settings,
            "Application configuration",
        ],
    ):
        self.client = http_client
        self.settings = settings
        self.base_url = settings.api_base

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _url(self, *segments: str) -> str:
        return self.base_url + "".join(
            "/" + quote(segment, safe="") for segment in segments
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            logger.warning(
                "api_unreachable",
                extra={
                    "method": method,
                    "url": url,
                    "error_type": type(exc).__name__,
                },
            )
            raise ApiUnavailableError(messages.API_UNREACHABLE) from exc

        if response.is_error:
            server_message = extract_error_message(response)
            logger.info(
                "api_error_response",
                extra={
                    "method": method,
                    "url": url,
                    "status_code": response.status_code,
                },
            )
            raise ApiError(response.status_code, server_message, url=url)

        return response

    def _parse(self, response: httpx.Response, model: Type[ModelT]) -> ModelT:
        """Unwrap the ``{"data": ...}`` envelope and validate it."""
        try:
            body = response.json()
        except ValueError as exc:
            logger.error(
                "api_response_not_json",
                extra={"url": str(response.request.url)},
            )
            raise ApiError(response.status_code, None, url=str(response.request.url)) from exc

        data = body.get("data") if isinstance(body, dict) and "data" in body else body

        if data is None:
            raise ApiError(response.status_code, None, url=str(response.request.url))

        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.error(
                "api_response_invalid",
                extra={
                    "url": str(response.request.url),
                    "model": model.__name__,
                    "error_count": exc.error_count(),
                },
            )
            raise ApiError(response.status_code, None, url=str(response.request.url)) from exc

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    async def get_signing_package(self, link_token: str) -> SigningPackage:
        response = await self._request("GET", self._url("sign", link_token))
        package = self._parse(response, SigningPackage)
        if package.link_token is None:
            package = package.model_copy(update={"link_token": link_token})
        return package

    async def submit_signature(
        self,
        link_token: str,
        submission: SigningSubmission,
    ) -> SubmissionReceipt:
        response = await self._request(
            "POST",
            self._url("sign", link_token, "submit"),
            json=submission.to_wire(),
        )
        return self._parse(response, SubmissionReceipt)

    # ------------------------------------------------------------------
    # Verification (all document types)
    # ------------------------------------------------------------------

    async def verify_token(
        self,
        token: str,
        type_hint: DocumentType = DocumentType.AUTO,
    ) -> VerificationResult:
        response = await self._request(
            "GET",
            self._url("verify", "token", token),
            params=type_query_params(type_hint),
        )
        return self._parse(response, VerificationResult)

    async def verify_hash(
        self,
        token: str,
        hash_value: str,
        type_hint: DocumentType = DocumentType.AUTO,
    ) -> VerificationResult:
        response = await self._request(
            "POST",
            self._url("verify", "token", token, "hash"),
            params=type_query_params(type_hint),
            json={"hash": hash_value},
        )
        return self._parse(response, VerificationResult)

    async def verify_pdf(
        self,
        token: str,
        filename: str,
        content: bytes,
        type_hint: DocumentType = DocumentType.AUTO,
    ) -> VerificationResult:
        response = await self._request(
            "POST",
            self._url("verify", "token", token, "pdf"),
            params=type_query_params(type_hint),
            files={"file": (filename, content, "application/pdf")},
        )
        return self._parse(response, VerificationResult)

    # ------------------------------------------------------------------
    # Verification (legacy contract-only routes)
    # ------------------------------------------------------------------

    async def verify_contract(self, token: str) -> ContractRecord:
        response = await self._request("GET", self._url("verify", token))
        return self._parse(response, ContractRecord)

    async def validate_contract_hash(
        self,
        token: str,
        hash_value: str,
    ) -> VerificationResult:
        response = await self._request(
            "POST",
            self._url("verify", token, "validate-hash"),
            json={"hash": hash_value},
        )
        return self._parse(response, VerificationResult)

    async def validate_contract_pdf(
        self,
        token: str,
        filename: str,
        content: bytes,
    ) -> VerificationResult:
        response = await self._request(
            "POST",
            self._url("verify", token, "validate-pdf"),
            files={"file": (filename, content, "application/pdf")},
        )
        return self._parse(response, VerificationResult)
