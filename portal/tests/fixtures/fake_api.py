"""
In-process fake of the public signing/verification REST API.

Served to the portal through ``httpx.ASGITransport``. Responses use the
real wire shapes: a ``{"data": ...}`` envelope on success and a
``{"message": ...}`` body on errors.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse

API_URL = "http://portal.test/api"

CONTRACT_TOKEN = "MR3X-CTR-2024-0001"
AGREEMENT_TOKEN = "MR3X-AGR-2024-0007"
INSPECTION_TOKEN = "MR3X-VST-2024-0003"
NOTIFICATION_TOKEN = "MR3X-NOT-2024-0002"

CONTRACT_PDF = b"%PDF-1.7\n% contract MR3X-CTR-2024-0001\n%%EOF\n"
AGREEMENT_PDF = b"%PDF-1.7\n% agreement MR3X-AGR-2024-0007\n%%EOF\n"
INSPECTION_PDF = b"%PDF-1.7\n% inspection MR3X-VST-2024-0003\n%%EOF\n"
NOTIFICATION_PDF = b"%PDF-1.7\n% notice MR3X-NOT-2024-0002\n%%EOF\n"

UNKNOWN_LINK_MESSAGE = "Link de assinatura não encontrado"
USED_LINK_MESSAGE = "Este link já foi utilizado"
REJECTED_SUBMISSION_MESSAGE = "Contrato não está aguardando assinaturas"
DOCUMENT_NOT_FOUND_MESSAGE = "Documento não encontrado"

# Server-side auto-detection rule for AUTO lookups
_PREFIX_TYPES = {
    "CTR": "CONTRACT",
    "AGR": "AGREEMENT",
    "VST": "INSPECTION",
    "NOT": "EXTRAJUDICIAL_NOTIFICATION",
}


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass
class FakeDocument:
    token: str
    document_type: str
    content: bytes
    status: str
    details: Dict[str, bool] = field(default_factory=dict)

    @property
    def hash(self) -> str:
        return sha256_hex(self.content)

    def as_result(self, valid: bool = True, message: str = "Documento autêntico") -> Dict[str, Any]:
        return {
            "valid": valid,
            "message": message,
            "documentType": self.document_type,
            "token": self.token,
            "hash": self.hash,
            "status": self.status,
            "createdAt": "2024-03-01T12:00:00Z",
            "signedAt": "2024-03-02T09:30:00Z",
            "details": self.details,
        }


@dataclass
class FakeApiState:
    links: Dict[str, Dict[str, Any]]
    documents: Dict[str, FakeDocument]
    submissions: List[Dict[str, Any]] = field(default_factory=list)
    requests: List[str] = field(default_factory=list)


def default_state() -> FakeApiState:
    links = {
        "link-tenant": {
            "signerType": "tenant",
            "signerName": "Maria Souza",
            "signerEmail": "maria@example.com",
            "contractToken": CONTRACT_TOKEN,
            "property": {
                "address": "Rua das Flores, 120",
                "neighborhood": "Pinheiros",
                "city": "São Paulo",
            },
            "startDate": "2024-04-01T00:00:00Z",
            "endDate": "2025-03-31T00:00:00Z",
            "monthlyRent": "2500.00",
        },
        "link-witness": {
            "signerType": "witness",
            "signerName": "João Lima",
            "contractToken": CONTRACT_TOKEN,
        },
        "link-rejected": {
            "signerType": "owner",
            "contractToken": CONTRACT_TOKEN,
        },
    }

    documents = {
        CONTRACT_TOKEN: FakeDocument(
            CONTRACT_TOKEN,
            "CONTRACT",
            CONTRACT_PDF,
            "ASSINADO",
            {"hasTenantSignature": True, "hasOwnerSignature": True},
        ),
        AGREEMENT_TOKEN: FakeDocument(
            AGREEMENT_TOKEN,
            "AGREEMENT",
            AGREEMENT_PDF,
            "ASSINADO",
            {
                "hasTenantSignature": True,
                "hasOwnerSignature": True,
                "hasAgencySignature": True,
            },
        ),
        INSPECTION_TOKEN: FakeDocument(
            INSPECTION_TOKEN,
            "INSPECTION",
            INSPECTION_PDF,
            "AGUARDANDO_ASSINATURAS",
            {"hasInspectorSignature": True, "hasTenantSignature": False},
        ),
        NOTIFICATION_TOKEN: FakeDocument(
            NOTIFICATION_TOKEN,
            "EXTRAJUDICIAL_NOTIFICATION",
            NOTIFICATION_PDF,
            "ENVIADA",
        ),
    }

    return FakeApiState(links=links, documents=documents)


def _error(status_code: int, message: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def _detect_type(token: str) -> Optional[str]:
    parts = token.split("-")
    if len(parts) < 2:
        return None
    return _PREFIX_TYPES.get(parts[1])


def _state(request: Request) -> FakeApiState:
    state: FakeApiState = request.app.state.fake
    state.requests.append(f"{request.method} {request.url.path}?{request.url.query}")
    return state


def _find_document(state: FakeApiState, token: str, type_param: Optional[str]) -> Optional[FakeDocument]:
    document = state.documents.get(token)
    if document is None:
        return None
    expected = type_param or _detect_type(token)
    if expected != document.document_type:
        return None
    return document


def _compare(document: FakeDocument, computed: str) -> Dict[str, Any]:
    if computed.lower() == document.hash:
        return document.as_result(True, "Hash confere com o documento registrado")
    result = document.as_result(False, "Hash não confere com o documento registrado")
    result["storedHash"] = document.hash
    result["computedHash"] = computed.lower()
    return result


router = APIRouter(prefix="/api")


# =============================================================================
# Signing
# =============================================================================

@router.get("/sign/{link_token}")
async def get_signing_data(link_token: str, request: Request):
    state = _state(request)
    if link_token == "link-used":
        return _error(410, USED_LINK_MESSAGE)
    if link_token == "link-broken":
        return _error(500, None)
    link = state.links.get(link_token)
    if link is None:
        return _error(404, UNKNOWN_LINK_MESSAGE)
    return {"data": link}


@router.post("/sign/{link_token}/submit")
async def submit_signature(link_token: str, request: Request, payload: Dict[str, Any] = Body(...)):
    state = _state(request)
    link = state.links.get(link_token)
    if link is None:
        return _error(404, UNKNOWN_LINK_MESSAGE)
    if link_token == "link-rejected":
        return _error(409, REJECTED_SUBMISSION_MESSAGE)

    problems = []
    if not payload.get("signature"):
        problems.append("signature should not be empty")
    if payload.get("geoLat") is None or payload.get("geoLng") is None:
        problems.append("geoLat and geoLng are required")
    if payload.get("geoConsent") is not True:
        problems.append("geoConsent must be true")
    if link["signerType"] == "witness":
        if not payload.get("witnessName") or not payload.get("witnessDocument"):
            problems.append("witnessName and witnessDocument are required")
    if problems:
        return _error(400, problems)

    state.submissions.append({"linkToken": link_token, **payload})
    return {"data": {"contractToken": link["contractToken"]}}


# =============================================================================
# Verification (all document types)
# =============================================================================

@router.get("/verify/token/{token}")
async def verify_token(token: str, request: Request, type: Optional[str] = None):
    state = _state(request)
    document = _find_document(state, token, type)
    if document is None:
        return _error(404, DOCUMENT_NOT_FOUND_MESSAGE)
    return {"data": document.as_result()}


@router.post("/verify/token/{token}/hash")
async def verify_hash(
    token: str,
    request: Request,
    type: Optional[str] = None,
    payload: Dict[str, Any] = Body(...),
):
    state = _state(request)
    document = _find_document(state, token, type)
    if document is None:
        return _error(404, DOCUMENT_NOT_FOUND_MESSAGE)
    value = payload.get("hash")
    if not isinstance(value, str) or not value:
        return _error(400, ["hash should not be empty"])
    return {"data": _compare(document, value)}


@router.post("/verify/token/{token}/pdf")
async def verify_pdf(
    token: str,
    request: Request,
    type: Optional[str] = None,
    file: UploadFile = File(...),
):
    state = _state(request)
    document = _find_document(state, token, type)
    if document is None:
        return _error(404, DOCUMENT_NOT_FOUND_MESSAGE)
    content = await file.read()
    return {"data": _compare(document, sha256_hex(content))}


# =============================================================================
# Verification (legacy contract-only routes)
# =============================================================================

@router.get("/verify/{token}")
async def verify_contract(token: str, request: Request):
    state = _state(request)
    document = state.documents.get(token)
    if document is None or document.document_type != "CONTRACT":
        return _error(404, "Contrato não encontrado")
    return {
        "data": {
            "token": document.token,
            "status": "SIGNED",
            "isValid": True,
            "message": "Contrato válido",
            "hashFinal": document.hash,
            "createdAt": "2024-03-01T12:00:00Z",
            "property": {"address": "Rua das Flores, 120", "city": "São Paulo"},
            "signatures": [
                {"type": "tenant", "signedAt": "2024-03-02T09:30:00Z"},
                {"type": "owner", "signedAt": "2024-03-02T10:00:00Z"},
                {"type": "witness", "signedAt": None},
            ],
        }
    }


@router.post("/verify/{token}/validate-hash")
async def validate_contract_hash(token: str, request: Request, payload: Dict[str, Any] = Body(...)):
    state = _state(request)
    document = state.documents.get(token)
    if document is None or document.document_type != "CONTRACT":
        return _error(404, "Contrato não encontrado")
    return {"data": _compare(document, str(payload.get("hash", "")))}


@router.post("/verify/{token}/validate-pdf")
async def validate_contract_pdf(token: str, request: Request, file: UploadFile = File(...)):
    state = _state(request)
    document = state.documents.get(token)
    if document is None or document.document_type != "CONTRACT":
        return _error(404, "Contrato não encontrado")
    content = await file.read()
    return {"data": _compare(document, sha256_hex(content))}


def build_fake_api(state: Optional[FakeApiState] = None) -> FastAPI:
    app = FastAPI()
    app.state.fake = state or default_state()
    app.include_router(router)
    return app
