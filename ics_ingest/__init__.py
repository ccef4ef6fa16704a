"""ics_ingest - iCalendar ingestion and normalization engine.

Converts raw ICS feed text into validated canonical events (single occurrences
and RRULE-driven series), tolerating the malformed feeds real calendar
exporters produce. Anomalies are reported through a diagnostics channel
instead of aborting the feed.
"""

__version__ = "0.1.0"

from .config import Config, load_config
from .diagnostics import (
    CollectingDiagnosticSink,
    Diagnostic,
    DiagnosticSeverity,
    DiagnosticSink,
    LoggingDiagnosticSink,
)
from .ingestor import ICSIngestor, get_events_from_ics
from .models import CanonicalEvent, IngestResult, RecurringEvent, SingleEvent

__all__ = [
    "__version__",
    "CanonicalEvent",
    "CollectingDiagnosticSink",
    "Config",
    "Diagnostic",
    "DiagnosticSeverity",
    "DiagnosticSink",
    "ICSIngestor",
    "IngestResult",
    "LoggingDiagnosticSink",
    "RecurringEvent",
    "SingleEvent",
    "get_events_from_ics",
    "load_config",
]
