"""
Submission gate for the signing flow.

The gate is a pure function of an immutable snapshot. Nothing stores a
"can submit" flag; every caller (the UI enabling the button and the
submit path re-checking it) recomputes it from the same snapshot.
"""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict

from portal.app.core import messages
from portal.app.schemas.signing import SignerType


class Precondition(str, Enum):
    SIGNATURE = "signature"
    GEO_CONSENT = "geo_consent"
    LOCATION = "location"
    WITNESS_NAME = "witness_name"
    WITNESS_DOCUMENT = "witness_document"

    @property
    def hint(self) -> str:
        """Short instruction shown next to the disabled submit control."""
        return _HINTS[self]

    @property
    def error(self) -> str:
        """Message used when a late re-check rejects the submission."""
        return _ERRORS[self]


_HINTS = {
    Precondition.SIGNATURE: messages.HINT_DRAW_SIGNATURE,
    Precondition.GEO_CONSENT: messages.HINT_AUTHORIZE_LOCATION,
    Precondition.LOCATION: messages.HINT_ACQUIRING_LOCATION,
    Precondition.WITNESS_NAME: messages.HINT_FILL_WITNESS,
    Precondition.WITNESS_DOCUMENT: messages.HINT_FILL_WITNESS,
}

_ERRORS = {
    Precondition.SIGNATURE: messages.SIGNATURE_REQUIRED,
    Precondition.GEO_CONSENT: messages.GEO_CONSENT_REQUIRED,
    Precondition.LOCATION: messages.GEOLOCATION_REQUIRED,
    Precondition.WITNESS_NAME: messages.WITNESS_NAME_REQUIRED,
    Precondition.WITNESS_DOCUMENT: messages.WITNESS_DOCUMENT_REQUIRED,
}


class SigningGate(BaseModel):
    """Snapshot of everything the submission gate depends on."""

    signature_present: bool
    geo_consent: bool
    has_location: bool
    signer_type: SignerType
    witness_name: str = ""
    witness_document: str = ""

    model_config = ConfigDict(frozen=True)


def unmet_preconditions(gate: SigningGate) -> List[Precondition]:
    """Unmet preconditions, in the order the signer should address them."""
    unmet: List[Precondition] = []

    if not gate.signature_present:
        unmet.append(Precondition.SIGNATURE)
    if not gate.geo_consent:
        unmet.append(Precondition.GEO_CONSENT)
    if not gate.has_location:
        unmet.append(Precondition.LOCATION)

    if gate.signer_type is SignerType.WITNESS:
        if not gate.witness_name.strip():
            unmet.append(Precondition.WITNESS_NAME)
        if not gate.witness_document.strip():
            unmet.append(Precondition.WITNESS_DOCUMENT)

    return unmet


def can_submit(gate: SigningGate) -> bool:
    return not unmet_preconditions(gate)


def submit_hints(gate: SigningGate) -> List[str]:
    """
    De-duplicated hints for the disabled submit control.

    The "acquiring location" hint only makes sense once consent is given.
    """
    unmet = unmet_preconditions(gate)
    hints: List[str] = []
    for precondition in unmet:
        if precondition is Precondition.LOCATION and not gate.geo_consent:
            continue
        if precondition.hint not in hints:
            hints.append(precondition.hint)
    return hints
