"""VEVENT translation into canonical events.

Maps one ``CalendarComponent`` into a ``SingleEvent`` or ``RecurringEvent``,
branching on recurring vs. non-recurring and all-day vs. timed. The only
condition that makes translation impossible is a start timestamp that cannot be
normalized; every other anomaly degrades with a diagnostic.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional, Union
from urllib.parse import urlparse

from dateutil.rrule import rrulestr
from icalendar import vRecur

from .components import CalendarComponent, CalendarTime
from .datetime_utils import TimestampNormalizer, ZonedInstant
from .diagnostics import DiagnosticSeverity, DiagnosticSink, report
from .models import RecurringEvent, SingleEvent

logger = logging.getLogger(__name__)

TranslatedEvent = Union[SingleEvent, RecurringEvent]


def canonicalize_rrule(raw: str, anchor: Optional[datetime] = None) -> str:
    """Normalize RRULE text to its canonical ``RRULE:`` form.

    The rule is re-serialized through icalendar's ``vRecur`` (canonical part
    order, upper-case names) and checked with dateutil so that rules which
    cannot be expanded downstream are rejected here.

    Args:
        raw: RRULE value, with or without the ``RRULE:`` prefix
        anchor: Series start used to validate the rule (wall time)

    Returns:
        Canonical rule text, e.g. ``RRULE:FREQ=WEEKLY;BYDAY=MO,WE``

    Raises:
        ValueError: If the rule is malformed
    """
    text = raw.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:"):]
    if not text:
        raise ValueError("Empty recurrence rule")

    try:
        canonical = vRecur.from_ical(text).to_ical().decode("utf-8")
    except Exception as e:
        raise ValueError(f"Malformed recurrence rule {raw!r}: {e}") from e
    if "FREQ=" not in canonical.upper():
        raise ValueError(f"Recurrence rule without FREQ: {raw!r}")

    dtstart = anchor.replace(tzinfo=None) if anchor is not None else None
    rrulestr(canonical, dtstart=dtstart, ignoretz=True)
    return f"RRULE:{canonical}"


def _is_http_url(value: str) -> bool:
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class EventTranslator:
    """Translator for VEVENT components into canonical events."""

    def __init__(self, sink: Optional[DiagnosticSink] = None) -> None:
        """Initialize event translator.

        Args:
            sink: Diagnostic sink for anomalies found during translation
        """
        self.sink = sink
        self.normalizer = TimestampNormalizer(sink)

    def translate(self, component: CalendarComponent) -> Optional[TranslatedEvent]:
        """Translate one VEVENT.

        Args:
            component: Typed VEVENT accessor

        Returns:
            Candidate event (not yet schema-validated), or None when the event
            has no uid or its start cannot be normalized
        """
        uid = component.uid
        title = component.summary

        if not uid:
            report(self.sink, DiagnosticSeverity.WARNING, f"Skipping event {title!r} without UID")
            return None

        start_time = component.start
        if start_time is None:
            errors = "; ".join(msg for name, msg in component.parse_errors if name.upper() == "DTSTART")
            report(
                self.sink,
                DiagnosticSeverity.WARNING,
                f"Skipping event {title!r}: missing or undecodable DTSTART"
                + (f" ({errors})" if errors else ""),
                uid,
            )
            return None

        start = self.normalizer.normalize(start_time, uid)
        if not start.is_valid:
            report(
                self.sink,
                DiagnosticSeverity.WARNING,
                f"Skipping event {title!r} due to invalid start date. Reason: {start.invalid_reason}",
                uid,
            )
            return None

        end = self._normalize_end(component, start, uid)
        is_all_day = start_time.is_date

        fields: dict[str, Any] = {
            "uid": uid,
            "title": title,
            "timezone": None if is_all_day else start.zone,
            "all_day": is_all_day,
            "start_time": None if is_all_day else start.time_of_day(),
            "end_time": None if is_all_day else end.in_zone_of(start).time_of_day(),
            "description": component.description,
            "url": self._resolve_url(component),
        }

        if component.is_recurring():
            recurring = self._to_recurring(component, start, end, fields)
            if recurring is not None:
                return recurring
        return self._to_single(component, start, end, fields)

    def _normalize_end(
        self, component: CalendarComponent, start: ZonedInstant, uid: str
    ) -> ZonedInstant:
        """Normalize DTEND/DURATION, substituting the start when absent or invalid."""
        end_time = component.end
        if end_time is None:
            if component.specifies_end:
                report(
                    self.sink,
                    DiagnosticSeverity.WARNING,
                    "Event has an undecodable end, using start date instead",
                    uid,
                )
            return start

        end = self.normalizer.normalize(end_time, uid)
        if not end.is_valid:
            report(
                self.sink,
                DiagnosticSeverity.WARNING,
                f"Event has invalid end date ({end.invalid_reason}), using start date instead",
                uid,
            )
            return start
        return end

    def _end_date(
        self,
        component: CalendarComponent,
        start: ZonedInstant,
        end: ZonedInstant,
        is_all_day: bool,
    ) -> Optional[str]:
        """Inclusive end day, or None when the occurrence stays on its start day."""
        start_date = start.iso_date()
        if is_all_day:
            if not component.specifies_end:
                return None
            # ICS all-day ends are exclusive
            end_date = (end.dt - timedelta(days=1)).date().isoformat()
        else:
            end_date = end.in_zone_of(start).iso_date()
        return end_date if end_date > start_date else None

    def _to_single(
        self,
        component: CalendarComponent,
        start: ZonedInstant,
        end: ZonedInstant,
        fields: dict[str, Any],
    ) -> SingleEvent:
        end_date = None
        if component.specifies_end:
            end_date = self._end_date(component, start, end, fields["all_day"])
        return SingleEvent.model_construct(date=start.iso_date(), end_date=end_date, **fields)

    def _to_recurring(
        self,
        component: CalendarComponent,
        start: ZonedInstant,
        end: ZonedInstant,
        fields: dict[str, Any],
    ) -> Optional[RecurringEvent]:
        """Build the series, or None when the RRULE is unusable (caller degrades to single)."""
        uid = fields["uid"]
        rrule_text = component.rrule_text
        try:
            if rrule_text is None:
                errors = "; ".join(msg for name, msg in component.parse_errors if name.upper() == "RRULE")
                raise ValueError(errors or "RRULE has no value")
            rrule = canonicalize_rrule(rrule_text, start.dt)
        except (ValueError, TypeError) as e:
            report(
                self.sink,
                DiagnosticSeverity.WARNING,
                f"Invalid RRULE {rrule_text!r} ({e}), importing first occurrence only",
                uid,
            )
            return None

        start_date = start.iso_date()
        skip_dates: list[str] = []
        for name, message in component.parse_errors:
            if name.upper() == "EXDATE":
                report(self.sink, DiagnosticSeverity.WARNING, f"Skipping undecodable EXDATE: {message}", uid)
        for exdate in component.exdates:
            skip_date = self._exdate_to_iso(exdate, start, fields["all_day"], uid)
            if skip_date is not None and skip_date not in skip_dates:
                skip_dates.append(skip_date)

        return RecurringEvent.model_construct(
            id=f"ics::{uid}::{start_date}::recurring",
            start_date=start_date,
            end_date=self._end_date(component, start, end, fields["all_day"]),
            rrule=rrule,
            skip_dates=skip_dates,
            **fields,
        )

    def _exdate_to_iso(
        self, exdate: CalendarTime, start: ZonedInstant, is_all_day: bool, uid: str
    ) -> Optional[str]:
        """Calendar day of one EXDATE, or None (with a diagnostic) when invalid."""
        instant = self.normalizer.normalize(exdate, uid)
        if not instant.is_valid:
            report(
                self.sink,
                DiagnosticSeverity.WARNING,
                f"Skipping invalid EXDATE {exdate.raw!r}: {instant.invalid_reason}",
                uid,
            )
            return None
        if not is_all_day and not exdate.is_date:
            instant = instant.in_zone_of(start)
        return instant.iso_date()

    def _resolve_url(self, component: CalendarComponent) -> Optional[str]:
        """Explicit URL, else the location when it is itself an http(s) URL."""
        if component.url:
            return component.url
        location = component.location.strip()
        if location and _is_http_url(location):
            return location
        return None
