"""
Verification schemas.

A VerificationResult is returned by every verification call (token
lookup, hash check, PDF check). ``valid=False`` on a successful HTTP
response is a business outcome (mismatch), not an error.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field

from portal.app.schemas.shared import ApiModel


class DocumentType(str, Enum):
    """
    Verifiable document families.

    AUTO is a client-side sentinel: it is never sent to the API and
    means "let the server detect the type from the token".
    """

    CONTRACT = "CONTRACT"
    AGREEMENT = "AGREEMENT"
    INSPECTION = "INSPECTION"
    EXTRAJUDICIAL_NOTIFICATION = "EXTRAJUDICIAL_NOTIFICATION"
    AUTO = "AUTO"


def type_query_params(type_hint: Optional[DocumentType]) -> Dict[str, str]:
    """Query parameters scoping a verification call to a document type."""
    if type_hint is None or type_hint is DocumentType.AUTO:
        return {}
    return {"type": type_hint.value}


class SignatureDetails(ApiModel):
    """Which parties have signed. Unknown role flags are preserved."""

    model_config = ConfigDict(extra="allow")

    has_tenant_signature: Optional[bool] = None
    has_owner_signature: Optional[bool] = None
    has_agency_signature: Optional[bool] = None
    has_inspector_signature: Optional[bool] = None

    def roles(self) -> Dict[str, bool]:
        """Known role flags that the server actually reported."""
        return {
            name: value
            for name, value in (
                ("has_tenant_signature", self.has_tenant_signature),
                ("has_owner_signature", self.has_owner_signature),
                ("has_agency_signature", self.has_agency_signature),
                ("has_inspector_signature", self.has_inspector_signature),
            )
            if value is not None
        }


class VerificationResult(ApiModel):
    valid: bool
    message: str = ""
    document_type: Optional[DocumentType] = None
    token: Optional[str] = None

    hash: Optional[str] = None
    stored_hash: Optional[str] = None
    computed_hash: Optional[str] = None

    status: Optional[str] = None
    created_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None

    details: Optional[SignatureDetails] = None

    @property
    def is_mismatch(self) -> bool:
        return not self.valid

    @property
    def hash_preview(self) -> Optional[str]:
        """Shortened digest for display."""
        if not self.hash:
            return None
        return f"{self.hash[:32]}..." if len(self.hash) > 32 else self.hash


# ---------------------------------------------------------------------------
# Legacy contract-only verification (``/verify/{token}``)
# ---------------------------------------------------------------------------

class ContractSignatureEntry(ApiModel):
    type: Optional[str] = None
    signed_at: Optional[datetime] = None

    @property
    def signed(self) -> bool:
        return self.signed_at is not None


class ContractRecord(ApiModel):
    """Public view of a contract returned by the legacy lookup."""

    token: Optional[str] = None
    status: Optional[str] = None
    is_valid: bool = False
    message: str = ""
    hash_final: Optional[str] = None
    created_at: Optional[datetime] = None
    property_info: Optional[Dict[str, Optional[str]]] = Field(None, alias="property")
    signatures: List[ContractSignatureEntry] = Field(default_factory=list)
