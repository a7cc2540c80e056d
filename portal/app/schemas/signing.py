"""
Signing flow schemas.

SigningPackage is what the API returns for an invitation link.
SigningSubmission is what the signer sends back; it is built fresh for
every attempt and validates its own completeness so that a partial
submission can never be serialized.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field, model_validator

from portal.app.schemas.shared import ApiModel


class SignerType(str, Enum):
    """Role of the person invited to sign."""

    TENANT = "tenant"
    OWNER = "owner"
    AGENCY = "agency"
    WITNESS = "witness"


class PropertySummary(ApiModel):
    address: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None

    def display_address(self) -> str:
        text = self.address or ""
        if self.neighborhood:
            text += f", {self.neighborhood}"
        if self.city:
            text += f" - {self.city}"
        return text


class SigningPackage(ApiModel):
    """
    A pending signature request, fetched by link token.

    Display-only apart from ``signer_type``, which decides whether the
    witness identity fields are mandatory.
    """

    link_token: Optional[str] = None
    signer_type: SignerType
    signer_name: Optional[str] = None
    signer_email: Optional[str] = None

    contract_token: Optional[str] = None
    # "property" on the wire; renamed so the builtin stays usable below
    property_info: Optional[PropertySummary] = Field(None, alias="property")
    parties: Optional[Dict[str, Any]] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    monthly_rent: Optional[Decimal] = None

    @property
    def requires_witness_fields(self) -> bool:
        return self.signer_type is SignerType.WITNESS


class SigningSubmission(ApiModel):
    """
    The signed payload POSTed to ``/sign/{linkToken}/submit``.

    Invariants:
    - signature is non-empty
    - both coordinates are present
    - geo_consent is True
    - witness fields are present (trimmed, non-empty) for witness
      signers and absent otherwise
    """

    signature: str = Field(..., min_length=1)
    geo_lat: float
    geo_lng: float
    geo_consent: bool
    witness_name: Optional[str] = None
    witness_document: Optional[str] = None

    @model_validator(mode="after")
    def enforce_consent(self) -> "SigningSubmission":
        if self.geo_consent is not True:
            raise ValueError("geo_consent must be explicitly granted")
        return self

    @classmethod
    def build(
        cls,
        *,
        signer_type: SignerType,
        signature: str,
        latitude: float,
        longitude: float,
        geo_consent: bool,
        witness_name: str = "",
        witness_document: str = "",
    ) -> "SigningSubmission":
        fields: Dict[str, Any] = {
            "signature": signature,
            "geo_lat": latitude,
            "geo_lng": longitude,
            "geo_consent": geo_consent,
        }

        if signer_type is SignerType.WITNESS:
            name = witness_name.strip()
            document = witness_document.strip()
            if not name or not document:
                raise ValueError("witness signers must provide name and document")
            fields["witness_name"] = name
            fields["witness_document"] = document

        return cls(**fields)


class SubmissionReceipt(ApiModel):
    """Returned by a successful submission."""

    contract_token: str = Field(..., min_length=1)
