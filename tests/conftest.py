"""Shared fixtures for ics_ingest tests."""

import logging
from collections.abc import Generator
from typing import Any, Callable

import pytest

from ics_ingest.diagnostics import CollectingDiagnosticSink


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")


def wrap_calendar(*vevents: str, header: str = "") -> str:
    """Wrap VEVENT blocks in a VCALENDAR with CRLF line endings."""
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//ics_ingest tests//EN",
    ]
    if header:
        lines.extend(header.strip().splitlines())
    for vevent in vevents:
        lines.extend(vevent.strip().splitlines())
    lines.append("END:VCALENDAR")
    return "\r\n".join(line.strip() for line in lines) + "\r\n"


@pytest.fixture
def build_ics() -> Callable[..., str]:
    """Return a helper that wraps VEVENT text in a calendar."""
    return wrap_calendar


@pytest.fixture
def sink() -> CollectingDiagnosticSink:
    """In-memory diagnostic sink."""
    return CollectingDiagnosticSink()


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, Any, None]:
    """Ensure ics_ingest environment variables do not leak into tests."""
    for name in ("ICS_INGEST_DEBUG", "ICS_INGEST_LOG_LEVEL", "ICS_INGEST_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def restore_logging() -> Generator[None, Any, None]:
    """Restore logger levels and handler filters touched by configure_logging()."""
    from ics_ingest.ingest_logging import EventUidFilter

    names = ("", "ics_ingest", "ics_ingest.diagnostics", "icalendar")
    saved_levels = {name: logging.getLogger(name).level for name in names}
    yield
    for handler in logging.getLogger().handlers:
        for log_filter in list(handler.filters):
            if isinstance(log_filter, EventUidFilter):
                handler.removeFilter(log_filter)
    for name, level in saved_levels.items():
        logging.getLogger(name).setLevel(level)


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_simple() -> str:
    """
    Return a simple ICS calendar string with a single timed event.

    Returns:
        ICS string with one event:
        - "Team Meeting" on 2024-01-15 10:00-11:00 UTC
    """
    return wrap_calendar(
        """
        BEGIN:VEVENT
        UID:simple-1@example.com
        DTSTAMP:20240101T000000Z
        DTSTART:20240115T100000Z
        DTEND:20240115T110000Z
        SUMMARY:Team Meeting
        DESCRIPTION:Weekly sync
        LOCATION:Conference Room A
        END:VEVENT
        """,
        header="X-WR-CALNAME:Work\nX-WR-TIMEZONE:America/New_York",
    )


@pytest.fixture
def sample_ics_series_with_exceptions() -> str:
    """
    Return a weekly series with one EXDATE and one RECURRENCE-ID exception.

    Returns:
        ICS string with:
        - "Standup" weekly on Mondays from 2024-02-26 09:00 America/New_York
        - EXDATE on 2024-03-04
        - exception record for the 2024-03-11 occurrence
    """
    return wrap_calendar(
        """
        BEGIN:VEVENT
        UID:series-1@example.com
        DTSTART;TZID=America/New_York:20240226T090000
        DTEND;TZID=America/New_York:20240226T093000
        RRULE:FREQ=WEEKLY;BYDAY=MO
        EXDATE;TZID=America/New_York:20240304T090000
        SUMMARY:Standup
        END:VEVENT
        """,
        """
        BEGIN:VEVENT
        UID:series-1@example.com
        RECURRENCE-ID;TZID=America/New_York:20240311T090000
        DTSTART;TZID=America/New_York:20240311T100000
        DTEND;TZID=America/New_York:20240311T103000
        SUMMARY:Standup (moved)
        END:VEVENT
        """,
    )
