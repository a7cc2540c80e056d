"""
Geolocation handoff between flows.

A location acquired with consent in one flow is written to a small JSON
file so a follow-up flow (acknowledgments, notices) can reuse it instead
of prompting again. The snapshot carries its capture time; readers
decide staleness.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger("portal.handoff")


class GeolocationSnapshot(BaseModel):
    latitude: float
    longitude: float
    address: Optional[str] = None
    captured_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("captured_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # other pages may write local timestamps without an offset
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def age(self, now: Optional[datetime] = None) -> timedelta:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now - self.captured_at


class GeolocationHandoffStore:
    def __init__(self, path: Path, max_age_seconds: float) -> None:
        self.path = Path(path)
        self.max_age = timedelta(seconds=max_age_seconds)

    def save(self, snapshot: GeolocationSnapshot) -> None:
        """Atomically replace the stored snapshot."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(snapshot.model_dump_json(), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def load(self, now: Optional[datetime] = None) -> Optional[GeolocationSnapshot]:
        """
        Return the stored snapshot, or None if it is missing, unreadable
        or older than ``max_age``.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                "handoff_snapshot_unreadable",
                extra={"path": str(self.path), "error_type": type(exc).__name__},
            )
            return None

        try:
            snapshot = GeolocationSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning("handoff_snapshot_corrupt", extra={"path": str(self.path)})
            return None

        if snapshot.age(now) > self.max_age:
            logger.info("handoff_snapshot_stale", extra={"path": str(self.path)})
            return None

        return snapshot

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
