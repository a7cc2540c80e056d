from __future__ import annotations

from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4, UUID

from pydantic import BaseModel, Field, ConfigDict


# ----------------------------------------------------------------------
# Event Types (Finite and Versioned)
# ----------------------------------------------------------------------
class PortalEventType(str, Enum):
    """
    Observations emitted by the signing and verification controllers.

    NOTE:
    This enum is finite and versioned.
    New entries must preserve observational semantics.
    """

    # ------------------------------------------------------------------
    # Front-end directives
    # ------------------------------------------------------------------
    NOTIFICATION = "notification"
    NAVIGATION_REQUESTED = "navigation_requested"

    # ------------------------------------------------------------------
    # Signing flow
    # ------------------------------------------------------------------
    PACKAGE_LOADED = "package_loaded"
    PACKAGE_REJECTED = "package_rejected"
    GEOLOCATION_REQUESTED = "geolocation_requested"
    GEOLOCATION_ACQUIRED = "geolocation_acquired"
    GEOLOCATION_FAILED = "geolocation_failed"
    SIGNATURE_SUBMITTED = "signature_submitted"
    SIGNATURE_REJECTED = "signature_rejected"

    # ------------------------------------------------------------------
    # Verification flow
    # ------------------------------------------------------------------
    LOOKUP_COMPLETED = "lookup_completed"
    LOOKUP_FAILED = "lookup_failed"
    HASH_CHECK_COMPLETED = "hash_check_completed"
    PDF_CHECK_COMPLETED = "pdf_check_completed"

    # ------------------------------------------------------------------
    # Lifecycle (terminal)
    # ------------------------------------------------------------------
    SESSION_CLOSED = "session_closed"


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class PortalEvent(BaseModel):
    """
    An immutable observation of a controller state transition.

    Events are:
    - strictly observational
    - transport-agnostic
    - never required for the flows to make progress
    """

    event_id: UUID = Field(default_factory=uuid4)
    session_id: str = Field(..., description="Controller session identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: PortalEventType

    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @classmethod
    def notification(
        cls,
        session_id: str,
        level: NotificationLevel,
        message: str,
    ) -> "PortalEvent":
        return cls(
            session_id=session_id,
            event_type=PortalEventType.NOTIFICATION,
            details={"level": level.value, "message": message},
        )
