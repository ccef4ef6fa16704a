"""Timestamp normalization for ICS ingestion.

Converts a ``CalendarTime`` into a ``ZonedInstant`` (absolute instant plus IANA
zone). Native conversion is attempted first; when it fails the raw textual
encoding is re-parsed using the three formats that occur in practice:

- ``YYYYMMDD``          (date)
- ``YYYYMMDDTHHMMSSZ``  (UTC date-time)
- ``YYYYMMDDTHHMMSS``   (zone-naive date-time)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Optional

from .components import CalendarTime
from .diagnostics import DiagnosticSeverity, DiagnosticSink, report
from .exceptions import InvalidInstantError
from .timezone_utils import UTC_ZONE, load_zone, normalize_timezone, zone_display_name

logger = logging.getLogger(__name__)

_ICAL_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_ICAL_UTC_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})Z$")
_ICAL_FLOATING_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})$")


@dataclass(frozen=True)
class ZonedInstant:
    """An absolute instant plus the zone it should be displayed in.

    Consumers must check ``is_valid`` before reading the instant.
    """

    instant: Optional[datetime]
    zone: str
    invalid_reason: Optional[str] = None

    @classmethod
    def invalid(cls, reason: str, zone: str = UTC_ZONE) -> ZonedInstant:
        return cls(instant=None, zone=zone, invalid_reason=reason)

    @property
    def is_valid(self) -> bool:
        return self.instant is not None and self.invalid_reason is None

    @property
    def dt(self) -> datetime:
        """The zoned datetime.

        Raises:
            InvalidInstantError: If this instant is invalid
        """
        if self.instant is None or self.invalid_reason is not None:
            raise InvalidInstantError(f"Invalid instant: {self.invalid_reason}")
        return self.instant

    def iso_date(self) -> str:
        """Calendar day in the instant's zone, ``YYYY-MM-DD``."""
        return self.dt.date().isoformat()

    def time_of_day(self) -> str:
        """24-hour wall time in the instant's zone, ``HH:MM``."""
        return self.dt.strftime("%H:%M")

    def in_zone_of(self, other: ZonedInstant) -> ZonedInstant:
        """This instant expressed in ``other``'s zone."""
        target = other.dt.tzinfo
        if target is None:
            return self
        return ZonedInstant(instant=self.dt.astimezone(target), zone=other.zone)


def convert_ical_date_to_iso(raw: str) -> Optional[str]:
    """Convert an ICS basic-format date/date-time string to ISO 8601.

    Args:
        raw: ``YYYYMMDD``, ``YYYYMMDDTHHMMSSZ`` or ``YYYYMMDDTHHMMSS``

    Returns:
        ISO extended string, or None for any other format

    Examples:
        >>> convert_ical_date_to_iso("20240310")
        '2024-03-10'
        >>> convert_ical_date_to_iso("20240310T090000Z")
        '2024-03-10T09:00:00Z'
        >>> convert_ical_date_to_iso("2024-03-10") is None
        True
    """
    match = _ICAL_DATE_RE.match(raw)
    if match:
        return "{}-{}-{}".format(*match.groups())

    match = _ICAL_UTC_DATETIME_RE.match(raw)
    if match:
        return "{}-{}-{}T{}:{}:{}Z".format(*match.groups())

    match = _ICAL_FLOATING_DATETIME_RE.match(raw)
    if match:
        return "{}-{}-{}T{}:{}:{}".format(*match.groups())

    return None


def _apply_zone(native: datetime, tz: tzinfo) -> datetime:
    """Attach (naive) or convert (aware) ``native`` to ``tz``."""
    if native.tzinfo is None:
        zoned = native.replace(tzinfo=tz)
    else:
        zoned = native.astimezone(tz)
    # Force offset computation so unrepresentable values fail here
    zoned.utcoffset()
    return zoned


class TimestampNormalizer:
    """Converts CalendarTime values into ZonedInstants with a multi-tier fallback."""

    def __init__(self, sink: Optional[DiagnosticSink] = None) -> None:
        """Initialize timestamp normalizer.

        Args:
            sink: Diagnostic sink for recovered anomalies
        """
        self.sink = sink

    def normalize(self, t: CalendarTime, uid: Optional[str] = None) -> ZonedInstant:
        """Normalize one calendar time.

        Date-only values take a fast path in UTC so the calendar day never shifts.
        Timed values go through native conversion, zone application (with a UTC
        retry), then raw-text recovery. Total failure yields an invalid instant;
        no exception escapes.

        Args:
            t: Calendar time to normalize
            uid: Owning event uid, for diagnostics

        Returns:
            ZonedInstant (check ``is_valid``)
        """
        if t.is_date:
            return self._from_date_parts(t)

        zone = normalize_timezone(t.timezone)

        try:
            native = t.to_datetime()
        except (ValueError, TypeError, OverflowError) as e:
            logger.debug("Native conversion failed for %r: %s", t.raw, e)
            return self._recover_from_raw(t, zone, uid)

        try:
            tz = load_zone(zone)
            zoned = _apply_zone(native, tz)
        except (KeyError, ValueError, OverflowError, OSError) as e:
            report(
                self.sink,
                DiagnosticSeverity.WARNING,
                f"Invalid timezone identifier {t.timezone!r}, falling back to UTC ({e})",
                uid,
            )
            try:
                zoned = _apply_zone(native, timezone.utc)
            except (ValueError, OverflowError) as utc_error:
                logger.debug("UTC retry failed for %r: %s", t.raw, utc_error)
                return self._recover_from_raw(t, UTC_ZONE, uid)
            return ZonedInstant(instant=zoned, zone="UTC")

        if t.timezone not in (None, "Z") and zone != t.timezone and zone != UTC_ZONE:
            report(
                self.sink,
                DiagnosticSeverity.DEBUG,
                f"Mapped timezone {t.timezone!r} to IANA timezone {zone!r}",
                uid,
            )
        return ZonedInstant(instant=zoned, zone=zone_display_name(tz))

    def _from_date_parts(self, t: CalendarTime) -> ZonedInstant:
        parts = t.date_parts
        if parts is None:
            return ZonedInstant.invalid(f"Date-only value without a date: {t.raw!r}")
        try:
            day = date(*parts)
        except ValueError as e:
            return ZonedInstant.invalid(f"Invalid date {t.raw!r}: {e}")
        return ZonedInstant(
            instant=datetime(day.year, day.month, day.day, tzinfo=timezone.utc),
            zone="UTC",
        )

    def _recover_from_raw(
        self, t: CalendarTime, zone: str, uid: Optional[str]
    ) -> ZonedInstant:
        """Re-parse the raw text of ``t`` in ``zone`` (UTC for the ``Z`` form)."""
        raw = t.raw.strip()
        iso = convert_ical_date_to_iso(raw)
        if iso is None:
            return ZonedInstant.invalid(f"Unrecognized date format {raw!r}", zone=zone)

        is_utc_form = iso.endswith("Z")
        try:
            parsed = datetime.fromisoformat(iso[:-1] if is_utc_form else iso)
        except ValueError as e:
            return ZonedInstant.invalid(f"Unparseable date {raw!r}: {e}", zone=zone)

        if is_utc_form:
            tz: tzinfo = timezone.utc
        else:
            try:
                tz = load_zone(zone)
            except (KeyError, ValueError, OSError):
                logger.debug("Zone %r unusable during recovery, using UTC", zone)
                tz = timezone.utc

        try:
            zoned = _apply_zone(parsed, tz)
        except (ValueError, OverflowError) as e:
            return ZonedInstant.invalid(f"Unrepresentable date {raw!r}: {e}", zone=zone)

        report(
            self.sink,
            DiagnosticSeverity.WARNING,
            f"Recovered date {raw!r} from raw text as {zoned.isoformat()}",
            uid,
        )
        return ZonedInstant(instant=zoned, zone=zone_display_name(tz))


def to_zoned_instant(
    t: CalendarTime,
    sink: Optional[DiagnosticSink] = None,
    uid: Optional[str] = None,
) -> ZonedInstant:
    """Normalize a CalendarTime (convenience function).

    Returns:
        ZonedInstant (check ``is_valid``)
    """
    return TimestampNormalizer(sink).normalize(t, uid)
