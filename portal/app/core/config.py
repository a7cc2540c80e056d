"""
Centralized configuration management for the signing portal.

Pydantic v2 settings management to enforce strict validation and
fast-failure on invalid configuration. The API base URL is the only
mandatory value; everything else has a production default.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# -------------------------------------------------------------------------
# Reusable Type Aliases
# -------------------------------------------------------------------------

Seconds = Annotated[
    float,
    Field(ge=0, description="Duration in seconds"),
]

Latitude = Annotated[float, Field(ge=-90, le=90)]
Longitude = Annotated[float, Field(ge=-180, le=180)]


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Portal settings parsed from the environment.

    Fails fast if the API base URL is missing or malformed.
    """

    # ---------------------------------------------------------------------
    # REST API
    # ---------------------------------------------------------------------

    api_url: Annotated[
        AnyHttpUrl,
        Field(description="Base URL of the public signing/verification API"),
    ]

    request_timeout_seconds: Annotated[
        float,
        Field(default=30.0, gt=0, description="Upper bound per HTTP request"),
    ]

    connect_timeout_seconds: Annotated[
        float,
        Field(default=10.0, gt=0),
    ]

    user_agent: str = "signing-portal/1.0"

    # ---------------------------------------------------------------------
    # Signing flow
    # ---------------------------------------------------------------------

    redirect_delay_seconds: Annotated[
        Seconds,
        Field(
            default=2.0,
            description=(
                "Delay between a confirmed submission and the redirect "
                "to the verification page"
            ),
        ),
    ]

    verification_path_template: Annotated[
        str,
        Field(
            default="/verify/{token}",
            pattern=r"\{token\}",
            description="Page path the signer is sent to after submitting",
        ),
    ]

    # ---------------------------------------------------------------------
    # Geolocation
    # ---------------------------------------------------------------------

    geolocation_high_accuracy: bool = True

    geolocation_timeout_seconds: Annotated[
        float,
        Field(default=15.0, gt=0),
    ]

    geolocation_maximum_age_seconds: Seconds = 0.0

    fixed_latitude: Optional[Latitude] = None
    fixed_longitude: Optional[Longitude] = None

    handoff_path: Annotated[
        Optional[Path],
        Field(
            default=None,
            description=(
                "Where the last acquired location is written for reuse "
                "by a follow-up flow. Disabled when unset."
            ),
        ),
    ]

    handoff_max_age_seconds: Annotated[
        float,
        Field(default=600.0, gt=0),
    ]

    # ---------------------------------------------------------------------
    # Best-effort enrichment
    # ---------------------------------------------------------------------

    reverse_geocoding_enabled: bool = False

    nominatim_url: Annotated[
        AnyHttpUrl,
        Field(
            default="https://nominatim.openstreetmap.org/reverse",
            description="Reverse geocoding endpoint (Nominatim API)",
        ),
    ]

    ip_lookup_url: Annotated[
        AnyHttpUrl,
        Field(
            default="https://api.ipify.org",
            description="Public IP echo service (ipify API)",
        ),
    ]

    # ---------------------------------------------------------------------
    # Operational Boundaries
    # ---------------------------------------------------------------------

    max_pdf_size_mb: Annotated[
        int,
        Field(
            default=25,
            ge=1,
            le=25,
            description="Upload limit for PDF verification (max 25MB)",
        ),
    ]

    log_level: Annotated[
        str,
        Field(
            default="INFO",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ]

    model_config = SettingsConfigDict(
        env_prefix="PORTAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # ---------------------------------------------------------------------
    # Validators
    # ---------------------------------------------------------------------

    @model_validator(mode="after")
    def fixed_coordinates_are_paired(self) -> "Settings":
        if (self.fixed_latitude is None) != (self.fixed_longitude is None):
            raise ValueError(
                "fixed_latitude and fixed_longitude must be set together."
            )
        return self

    # ---------------------------------------------------------------------
    # Derived values
    # ---------------------------------------------------------------------

    @property
    def api_base(self) -> str:
        return str(self.api_url).rstrip("/")

    @property
    def max_pdf_size_bytes(self) -> int:
        return self.max_pdf_size_mb * 1024 * 1024

    def verification_path(self, token: str) -> str:
        return self.verification_path_template.format(token=token)


# -------------------------------------------------------------------------
# Settings Provider
# -------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Process-wide settings singleton.

    Tests construct ``Settings`` directly instead of going through here.
    """
    return Settings()
