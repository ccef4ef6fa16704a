"""Structured diagnostics channel for ICS ingestion.

Every recoverable anomaly found while ingesting a feed (fallback date parsing,
unmapped timezones, dropped exceptions, rejected events) is reported as a
``Diagnostic`` through an injected ``DiagnosticSink``. Sinks only inform; they are
never used to abort processing.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

diagnostics_logger = logging.getLogger("ics_ingest.diagnostics")

# UID of the component currently being translated
current_event_uid: ContextVar[str] = ContextVar("current_event_uid", default="")


class DiagnosticSeverity(str, Enum):
    """Severity of a diagnostic."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def log_level(self) -> int:
        """Matching ``logging`` level."""
        return {
            DiagnosticSeverity.DEBUG: logging.DEBUG,
            DiagnosticSeverity.INFO: logging.INFO,
            DiagnosticSeverity.WARNING: logging.WARNING,
            DiagnosticSeverity.ERROR: logging.ERROR,
        }[self]


@dataclass(frozen=True)
class Diagnostic:
    """A single anomaly report: severity, message and the affected event uid."""

    severity: DiagnosticSeverity
    message: str
    uid: Optional[str] = None


class DiagnosticSink(Protocol):
    """Receiver of diagnostics emitted during ingestion."""

    def emit(self, diagnostic: Diagnostic) -> None:
        """Record one diagnostic."""
        ...


class LoggingDiagnosticSink:
    """Default sink: forwards every diagnostic to the ``ics_ingest.diagnostics`` logger."""

    def emit(self, diagnostic: Diagnostic) -> None:
        diagnostics_logger.log(
            diagnostic.severity.log_level,
            "%s",
            diagnostic.message,
            extra={"diagnostic_uid": diagnostic.uid or "-"},
        )


@dataclass
class CollectingDiagnosticSink:
    """In-memory sink, used by the report API and by tests."""

    diagnostics: list[Diagnostic] = field(default_factory=list)

    def emit(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    def for_uid(self, uid: str) -> list[Diagnostic]:
        """Diagnostics that reference ``uid``."""
        return [d for d in self.diagnostics if d.uid == uid]

    def by_severity(self, severity: DiagnosticSeverity) -> list[Diagnostic]:
        """Diagnostics of one severity."""
        return [d for d in self.diagnostics if d.severity == severity]

    def clear(self) -> None:
        self.diagnostics.clear()

    def __len__(self) -> int:
        return len(self.diagnostics)


class FanOutDiagnosticSink:
    """Forwards each diagnostic to several sinks.

    A failing sink is logged and skipped so that reporting can never abort ingestion.
    """

    def __init__(self, *sinks: DiagnosticSink) -> None:
        self.sinks = list(sinks)

    def emit(self, diagnostic: Diagnostic) -> None:
        for sink in self.sinks:
            try:
                sink.emit(diagnostic)
            except Exception:
                logger.exception("Diagnostic sink %r failed", sink)


@contextlib.contextmanager
def event_context(uid: Optional[str]) -> Iterator[None]:
    """Mark ``uid`` as the event currently being processed.

    Log records and diagnostics emitted inside the block are correlated with it.
    """
    token = current_event_uid.set(uid or "")
    try:
        yield
    finally:
        current_event_uid.reset(token)


def report(
    sink: Optional[DiagnosticSink],
    severity: DiagnosticSeverity,
    message: str,
    uid: Optional[str] = None,
) -> None:
    """Emit a diagnostic, defaulting the uid to the current event context.

    Args:
        sink: Destination; the logging sink is used when None
        severity: Diagnostic severity
        message: Human-readable description of the anomaly
        uid: Affected event uid (falls back to the current event context)
    """
    if uid is None:
        uid = current_event_uid.get() or None
    target = sink if sink is not None else _default_sink
    target.emit(Diagnostic(severity=severity, message=message, uid=uid))


_default_sink = LoggingDiagnosticSink()
