"""
User-facing texts (pt-BR) and presentation labels.

PRESENTATION ONLY: nothing in here may influence gating or
verification outcomes.
"""

from __future__ import annotations

from typing import Optional


# ---------------------------------------------------------------------------
# Signing flow
# ---------------------------------------------------------------------------

LINK_INVALID = "Link inválido ou expirado"
SIGNATURE_REGISTERED = "Assinatura registrada com sucesso!"
SIGNATURE_SUBMIT_FAILED = "Erro ao registrar assinatura"
SUBMISSION_IN_PROGRESS = "A assinatura já está sendo enviada."
PACKAGE_NOT_LOADED = "Os dados do contrato ainda não foram carregados."
ALREADY_SUBMITTED = "Esta assinatura já foi registrada."

SIGNATURE_REQUIRED = "Assinatura é obrigatória"
GEOLOCATION_REQUIRED = "Geolocalização é obrigatória"
GEO_CONSENT_REQUIRED = "Consentimento de geolocalização é obrigatório"
WITNESS_NAME_REQUIRED = "Nome da testemunha é obrigatório"
WITNESS_DOCUMENT_REQUIRED = "Documento da testemunha é obrigatório"

HINT_DRAW_SIGNATURE = "Desenhe sua assinatura."
HINT_AUTHORIZE_LOCATION = "Autorize a localização."
HINT_ACQUIRING_LOCATION = "Obtendo localização..."
HINT_FILL_WITNESS = "Preencha seus dados."

# ---------------------------------------------------------------------------
# Geolocation
# ---------------------------------------------------------------------------

LOCATION_UNAVAILABLE = (
    "Não foi possível obter sua localização. "
    "Por favor, verifique as permissões do navegador."
)
LOCATION_PERMISSION_DENIED = "Permissão de localização negada."
LOCATION_POSITION_UNAVAILABLE = "Localização indisponível no momento."
LOCATION_TIMEOUT = "Tempo esgotado ao obter a localização."
LOCATION_ACQUIRED = "Localização obtida com sucesso!"

# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

LOOKUP_FAILED = "Erro ao verificar documento"
HASH_CHECK_FAILED = "Erro ao verificar hash"
PDF_CHECK_FAILED = "Erro ao verificar PDF"
API_UNREACHABLE = "Não foi possível conectar ao servidor. Tente novamente."
LOOKUP_REQUIRED = "Consulte um documento válido antes de verificar."
HASH_INPUT_REQUIRED = "Informe o hash SHA-256 do documento."
PDF_FILE_REQUIRED = "Selecione o arquivo PDF do documento."
PDF_FILE_EMPTY = "O arquivo PDF está vazio."


def pdf_file_too_large(limit_mb: int) -> str:
    return f"O arquivo excede o limite de {limit_mb}MB."


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

SIGNER_TYPE_LABELS = {
    "tenant": "Inquilino",
    "owner": "Proprietário",
    "agency": "Imobiliária",
    "witness": "Testemunha",
}

DOCUMENT_TYPE_LABELS = {
    "CONTRACT": "Contrato",
    "AGREEMENT": "Acordo",
    "INSPECTION": "Vistoria",
    "EXTRAJUDICIAL_NOTIFICATION": "Notificação Extrajudicial",
    "AUTO": "Auto-detectar",
}

CONTRACT_STATUS_LABELS = {
    "DRAFT": "Rascunho",
    "PENDING_SIGNATURES": "Aguardando",
    "PARTIALLY_SIGNED": "Parcial",
    "SIGNED": "Assinado",
    "FINALIZED": "Finalizado",
    "REVOKED": "Revogado",
}

SIGNATURE_ROLE_LABELS = {
    "has_tenant_signature": "Inquilino",
    "has_owner_signature": "Proprietário",
    "has_agency_signature": "Agência",
    "has_inspector_signature": "Inspetor",
}

_VALID_STATUS_MARKERS = ("ATIVO", "ASSINADO", "CONCLUIDO")
_PENDING_STATUS_MARKERS = ("PENDENTE", "RASCUNHO", "AGUARDANDO")


def document_type_label(document_type: Optional[str]) -> str:
    if not document_type:
        return ""
    return DOCUMENT_TYPE_LABELS.get(document_type, document_type)


def signer_type_label(signer_type: Optional[str]) -> str:
    if not signer_type:
        return ""
    return SIGNER_TYPE_LABELS.get(signer_type, signer_type)


def contract_status_label(status: Optional[str]) -> str:
    if not status:
        return ""
    return CONTRACT_STATUS_LABELS.get(status, status)


def signature_role_label(role: str) -> str:
    return SIGNATURE_ROLE_LABELS.get(role, role)


def classify_status(status: Optional[str]) -> Optional[str]:
    """
    Bucket a free-text document status into ``"valid"``, ``"pending"``
    or ``"other"``. Returns None when there is no status to show.
    """
    if not status:
        return None
    upper = status.upper()
    if any(marker in upper for marker in _VALID_STATUS_MARKERS):
        return "valid"
    if any(marker in upper for marker in _PENDING_STATUS_MARKERS):
        return "pending"
    return "other"


def format_coordinates(latitude: float, longitude: float) -> str:
    return f"{latitude:.6f}, {longitude:.6f}"
