"""Typed boundary over the icalendar component tree.

The icalendar library exposes loosely-typed properties (``vDDDTypes``,
``vDDDLists``, ``vRecur``, broken values, lists for repeated
properties). ``CalendarComponent`` and ``CalendarTime`` convert all of that into
explicit optional values so the rest of the engine never handles raw library
objects or library exceptions.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from icalendar import Calendar, Event as ICalEvent

from .exceptions import ICSParseError

logger = logging.getLogger(__name__)

_RAW_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})")


def _first(value: Any) -> Any:
    """Return the first entry of a repeated property, or the value itself."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _decode_ical(prop: Any) -> str:
    """Textual ICS encoding of a property value."""
    if hasattr(prop, "to_ical"):
        try:
            encoded = prop.to_ical()
        except Exception:
            logger.debug("to_ical() failed for %r", prop, exc_info=True)
        else:
            return encoded.decode("utf-8") if isinstance(encoded, bytes) else str(encoded)
    return str(prop)


def _decoded(prop: Any, attr: str) -> Any:
    """Decoded attribute (``dt``/``dts``) of a property, None when the library cannot decode it.

    Newer icalendar releases keep undecodable values as broken properties that
    raise on attribute access instead of dropping them.
    """
    try:
        return getattr(prop, attr, None)
    except Exception:
        logger.debug("Undecodable %s on %r", attr, prop, exc_info=True)
        return None


def format_ical_value(value: date) -> str:
    """Render a date or datetime in ICS basic format (YYYYMMDD / YYYYMMDDTHHMMSS[Z])."""
    if isinstance(value, datetime):
        text = value.strftime("%Y%m%dT%H%M%S")
        if value.tzinfo is not None and value.utcoffset() == timedelta(0):
            text += "Z"
        return text
    return value.strftime("%Y%m%d")


@dataclass(frozen=True)
class CalendarTime:
    """A single timestamp as encoded in the source feed.

    Attributes:
        value: Library-decoded value (``date`` or ``datetime``), None when the
            library could not decode the text
        tzid: TZID parameter of the property, if any
        raw: Textual encoding of the value (e.g. ``20240310T090000Z``)
        value_type: VALUE parameter of the property (``DATE``/``DATE-TIME``), if any
    """

    value: Optional[date]
    tzid: Optional[str] = None
    raw: str = ""
    value_type: Optional[str] = None

    @classmethod
    def from_property(cls, prop: Any) -> Optional[CalendarTime]:
        """Build a CalendarTime from an icalendar date/date-time property.

        Returns None when the property is absent.
        """
        prop = _first(prop)
        if prop is None:
            return None

        params = getattr(prop, "params", None) or {}
        tzid = params.get("TZID")
        value_type = params.get("VALUE")
        value = _decoded(prop, "dt")
        if not isinstance(value, date):
            # Broken value kept as text by the library
            value = None
        return cls(
            value=value,
            tzid=str(tzid) if tzid else None,
            raw=_decode_ical(prop).strip(),
            value_type=str(value_type).upper() if value_type else None,
        )

    @property
    def is_date(self) -> bool:
        """True for date-only (all-day) values."""
        if self.value is not None:
            return not isinstance(self.value, datetime)
        return self.value_type == "DATE" or re.fullmatch(r"\d{8}", self.raw) is not None

    @property
    def date_parts(self) -> Optional[tuple[int, int, int]]:
        """(year, month, day) triple, read from the decoded value or the raw text."""
        if self.value is not None:
            return self.value.year, self.value.month, self.value.day
        match = _RAW_DATE_RE.match(self.raw)
        if not match:
            return None
        return int(match.group(1)), int(match.group(2)), int(match.group(3))

    @property
    def timezone(self) -> Optional[str]:
        """Raw zone token: ``"Z"``, the TZID, the decoded tzinfo key, or None."""
        if self.tzid:
            return self.tzid
        if self.raw.endswith("Z"):
            return "Z"
        if isinstance(self.value, datetime) and self.value.tzinfo is not None:
            if self.value.utcoffset() == timedelta(0) and (
                self.value.tzinfo is timezone.utc or str(self.value.tzinfo).upper() == "UTC"
            ):
                return "Z"
            key = getattr(self.value.tzinfo, "key", None) or getattr(
                self.value.tzinfo, "zone", None
            )
            return str(key) if key else None
        return None

    def to_datetime(self) -> datetime:
        """Best-effort native conversion; the result may be naive (floating).

        Raises:
            ValueError: If the library could not decode the value
        """
        if self.value is None:
            raise ValueError(f"Undecodable calendar time {self.raw!r}")
        if isinstance(self.value, datetime):
            return self.value
        return datetime.combine(self.value, time())

    def shifted(self, delta: timedelta) -> Optional[CalendarTime]:
        """A copy moved by ``delta`` (used to derive DTEND from DURATION)."""
        if self.value is None:
            return None
        value = self.value + delta
        return CalendarTime(
            value=value,
            tzid=self.tzid,
            raw=format_ical_value(value),
            value_type=self.value_type,
        )


class CalendarComponent:
    """Explicitly-typed accessor over one icalendar VEVENT."""

    def __init__(self, component: ICalEvent) -> None:
        self._component = component

    def _text(self, name: str) -> str:
        value = _first(self._component.get(name))
        if value is None:
            return ""
        return str(value)

    @property
    def uid(self) -> str:
        return self._text("UID").strip()

    @property
    def summary(self) -> str:
        return self._text("SUMMARY")

    @property
    def description(self) -> str:
        return self._text("DESCRIPTION")

    @property
    def location(self) -> str:
        return self._text("LOCATION")

    @property
    def url(self) -> str:
        return self._text("URL").strip()

    @property
    def start(self) -> Optional[CalendarTime]:
        return CalendarTime.from_property(self._component.get("DTSTART"))

    @property
    def specifies_end(self) -> bool:
        """True when DTEND or DURATION is present, even if undecodable or equal to the start."""
        if "DTEND" in self._component or "DURATION" in self._component:
            return True
        return any(name.upper() in ("DTEND", "DURATION") for name, _ in self.parse_errors)

    @property
    def end(self) -> Optional[CalendarTime]:
        """DTEND, or DTSTART + DURATION, or None when neither is usable."""
        if "DTEND" in self._component:
            return CalendarTime.from_property(self._component.get("DTEND"))

        duration = _first(self._component.get("DURATION"))
        delta = _decoded(duration, "dt") if duration is not None else None
        start = self.start
        if isinstance(delta, timedelta) and start is not None:
            return start.shifted(delta)
        return None

    @property
    def has_recurrence_marker(self) -> bool:
        """True for exception records (RECURRENCE-ID present, even if undecodable)."""
        if "RECURRENCE-ID" in self._component:
            return True
        return any(name.upper() == "RECURRENCE-ID" for name, _ in self.parse_errors)

    def is_recurring(self) -> bool:
        """True when an RRULE is present, including one the library failed to decode."""
        if "RRULE" in self._component:
            return True
        return any(name.upper() == "RRULE" for name, _ in self.parse_errors)

    @property
    def rrule_text(self) -> Optional[str]:
        """Raw RRULE value text (first RRULE when repeated)."""
        prop = _first(self._component.get("RRULE"))
        if prop is None:
            return None
        return _decode_ical(prop).strip() or None

    @property
    def exdates(self) -> list[CalendarTime]:
        """Every EXDATE value, flattened across repeated and comma-separated properties."""
        props = self._component.get("EXDATE")
        if props is None:
            return []
        if not isinstance(props, list):
            props = [props]

        exdates: list[CalendarTime] = []
        for prop in props:
            params = getattr(prop, "params", None) or {}
            tzid = params.get("TZID")
            value_type = params.get("VALUE")
            entries = _decoded(prop, "dts")
            if entries is None:
                if isinstance(_decoded(prop, "dt"), date):
                    entries = [prop]
                else:
                    entries = _decode_ical(prop).split(",")
            for entry in entries:
                if isinstance(entry, str):
                    exdates.append(
                        CalendarTime(
                            value=None,
                            tzid=str(tzid) if tzid else None,
                            raw=entry.strip(),
                            value_type=str(value_type).upper() if value_type else None,
                        )
                    )
                    continue
                value = _decoded(entry, "dt")
                exdates.append(
                    CalendarTime(
                        value=value if isinstance(value, date) else None,
                        tzid=str(tzid) if tzid else None,
                        raw=_decode_ical(entry).strip(),
                        value_type=str(value_type).upper() if value_type else None,
                    )
                )
        return exdates

    @property
    def parse_errors(self) -> list[tuple[str, str]]:
        """(property, message) pairs the library recorded while decoding."""
        return [(str(name), str(message)) for name, message in getattr(self._component, "errors", [])]


@dataclass
class ParsedCalendar:
    """VEVENT components plus calendar-level metadata of one feed."""

    components: list[CalendarComponent] = field(default_factory=list)
    calendar_name: Optional[str] = None
    timezone: Optional[str] = None
    prodid: Optional[str] = None
    ics_version: Optional[str] = None


def parse_calendar(text: str) -> ParsedCalendar:
    """Tokenize ICS text into typed components.

    Args:
        text: ICS text (one or more VCALENDAR blocks)

    Returns:
        ParsedCalendar with every VEVENT in document order

    Raises:
        ICSParseError: If the library cannot parse the text at all
    """
    try:
        calendars = Calendar.from_ical(text, multiple=True)
    except Exception as e:
        raise ICSParseError(f"Failed to parse ICS content: {e}") from e

    if not calendars:
        raise ICSParseError("No VCALENDAR found in ICS content")

    parsed = ParsedCalendar()
    first = calendars[0]
    for attr, prop in (
        ("calendar_name", "X-WR-CALNAME"),
        ("timezone", "X-WR-TIMEZONE"),
        ("prodid", "PRODID"),
        ("ics_version", "VERSION"),
    ):
        value = _first(first.get(prop))
        if value is not None:
            setattr(parsed, attr, str(value))

    for calendar in calendars:
        parsed.components.extend(CalendarComponent(vevent) for vevent in calendar.walk("VEVENT"))
    return parsed
