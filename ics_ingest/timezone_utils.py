"""Timezone identifier resolution for ics_ingest.

ICS files exported by Outlook/Exchange frequently carry Windows timezone names
(``TZID=W. Europe Standard Time``) instead of IANA identifiers. This module maps
any raw TZID token to an IANA name, degrading to pass-through instead of failing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import timezone, tzinfo
from types import MappingProxyType
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# Sentinel returned for UTC markers ("Z", "UTC", blank)
UTC_ZONE = "utc"

# Windows / vendor timezone names to IANA identifier mapping
# Common names used in ICS files from Outlook/Exchange
WINDOWS_TZ_MAP: Mapping[str, str] = MappingProxyType(
    {
        # Outlook customizations
        "Romance Standard Time": "Europe/Paris",
        "Central European Standard Time": "Europe/Berlin",
        "Customized Time Zone": "Europe/Amsterdam",
        # Europe
        "W. Europe Standard Time": "Europe/Berlin",
        "Central Europe Standard Time": "Europe/Budapest",
        "E. Europe Standard Time": "Europe/Bucharest",
        "Russian Standard Time": "Europe/Moscow",
        "GMT Standard Time": "Europe/London",
        "Greenwich Standard Time": "Europe/London",
        # Americas
        "Eastern Standard Time": "America/New_York",
        "Central Standard Time": "America/Chicago",
        "Mountain Standard Time": "America/Denver",
        "Pacific Standard Time": "America/Los_Angeles",
        "Alaskan Standard Time": "America/Anchorage",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "Arizona Standard Time": "America/Phoenix",
        "Atlantic Standard Time": "America/Halifax",
        "Central America Standard Time": "America/Guatemala",
        "Mexico Standard Time": "America/Mexico_City",
        "SA Pacific Standard Time": "America/Bogota",
        "SA Western Standard Time": "America/Caracas",
        "SA Eastern Standard Time": "America/Sao_Paulo",
        "Pacific SA Standard Time": "America/Santiago",
        # Asia / Pacific
        "Tokyo Standard Time": "Asia/Tokyo",
        "Korea Standard Time": "Asia/Seoul",
        "China Standard Time": "Asia/Shanghai",
        "India Standard Time": "Asia/Kolkata",
        "Singapore Standard Time": "Asia/Singapore",
        "W. Australia Standard Time": "Australia/Perth",
        "AUS Eastern Standard Time": "Australia/Sydney",
        "New Zealand Standard Time": "Pacific/Auckland",
        # Middle East
        "Arab Standard Time": "Asia/Riyadh",
        "Israel Standard Time": "Asia/Jerusalem",
        "Turkey Standard Time": "Europe/Istanbul",
        # Africa
        "South Africa Standard Time": "Africa/Johannesburg",
        "Egypt Standard Time": "Africa/Cairo",
    }
)


def is_valid_iana_zone(name: str) -> bool:
    """Check whether ``name`` loads as an IANA timezone on this system."""
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError):
        return False
    return True


def windows_tz_to_iana(windows_tz: str) -> str | None:
    """Convert Windows timezone name to IANA timezone identifier.

    Args:
        windows_tz: Windows timezone name (e.g., "Mountain Standard Time")

    Returns:
        IANA timezone identifier (e.g., "America/Denver") or None if not found
    """
    return WINDOWS_TZ_MAP.get(windows_tz)


def normalize_timezone(raw: Optional[str]) -> str:
    """Normalize a raw TZID token to an IANA timezone identifier.

    Resolution order: blank or UTC marker -> ``"utc"``; valid IANA name -> unchanged;
    known Windows name -> mapped IANA name; anything else -> returned unchanged.
    Never raises; callers must cope with the pass-through of unknown tokens.

    Args:
        raw: ``"Z"``, an IANA name, a vendor name, or None

    Returns:
        ``"utc"``, an IANA identifier, or the raw token when unresolvable
    """
    if raw is None or not raw.strip():
        return UTC_ZONE

    if raw == "Z" or raw.lower() == UTC_ZONE:
        return UTC_ZONE

    if is_valid_iana_zone(raw):
        return raw

    mapped = windows_tz_to_iana(raw)
    if mapped:
        logger.debug("Mapped Windows timezone %r to IANA timezone %r", raw, mapped)
        return mapped

    logger.debug("No IANA mapping for timezone %r, passing through", raw)
    return raw


def load_zone(name: str) -> tzinfo:
    """Load a tzinfo for a normalized zone name.

    Raises:
        ZoneInfoNotFoundError: If the name is not a known zone
        ValueError: If the name is not a well-formed zone key
        OSError: If the name maps to a directory or an unusable path
    """
    if name == UTC_ZONE:
        return timezone.utc
    return ZoneInfo(name)


def zone_display_name(tz: tzinfo) -> str:
    """IANA spelling of a tzinfo, ``"UTC"`` for the UTC singleton."""
    if tz is timezone.utc:
        return "UTC"
    key = getattr(tz, "key", None)
    if key:
        return str(key)
    return str(tz)
