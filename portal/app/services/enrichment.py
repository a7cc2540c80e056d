"""
Best-effort enrichment lookups.

Nothing here may block or fail a gated action: every function returns a
placeholder instead of raising.
"""

import logging

import httpx

from portal.app.core.config import Settings
from portal.app.core.messages import format_coordinates

logger = logging.getLogger("portal.enrichment")

UNKNOWN_IP = "unknown"


async def reverse_geocode(
    client: httpx.AsyncClient,
    settings: Settings,
    latitude: float,
    longitude: float,
) -> str:
    """
    Human-readable address for a coordinate pair (Nominatim).

    Falls back to ``"lat, lng"`` with 6 decimals.
    """
    fallback = format_coordinates(latitude, longitude)

    try:
        response = await client.get(
            str(settings.nominatim_url),
            params={
                "format": "json",
                "lat": latitude,
                "lon": longitude,
                "accept-language": "pt-BR",
            },
            headers={"User-Agent": settings.user_agent},
            timeout=10.0,
        )
        response.raise_for_status()
        address = response.json().get("address")
    except (httpx.HTTPError, ValueError, AttributeError) as exc:
        logger.info(
            "reverse_geocode_failed",
            extra={"error_type": type(exc).__name__},
        )
        return fallback

    if not isinstance(address, dict):
        return fallback

    parts = [
        address.get("road"),
        address.get("suburb"),
        address.get("city") or address.get("town") or address.get("village"),
        address.get("state"),
        address.get("country"),
    ]
    label = ", ".join(p for p in parts if p)
    return label or fallback


async def lookup_public_ip(
    client: httpx.AsyncClient,
    settings: Settings,
) -> str:
    """Public IP of this host as seen by ipify, or ``"unknown"``."""
    try:
        response = await client.get(
            str(settings.ip_lookup_url),
            params={"format": "json"},
            timeout=5.0,
        )
        response.raise_for_status()
        ip = response.json().get("ip")
    except (httpx.HTTPError, ValueError, AttributeError) as exc:
        logger.info(
            "public_ip_lookup_failed",
            extra={"error_type": type(exc).__name__},
        )
        return UNKNOWN_IP

    return ip if isinstance(ip, str) and ip else UNKNOWN_IP
