"""ICS ingestion pipeline.

raw text -> preprocessed text -> component tree -> per-component translation
-> base/exception partitioning -> exception merge -> schema validation.

The pipeline is a pure function of its input text: no state survives between
calls, and no exception escapes ``ingest()``. Failures surface as fewer events
plus diagnostics.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from .components import CalendarComponent, ParsedCalendar, parse_calendar
from .config import Config
from .diagnostics import (
    CollectingDiagnosticSink,
    DiagnosticSeverity,
    DiagnosticSink,
    FanOutDiagnosticSink,
    LoggingDiagnosticSink,
    event_context,
    report,
)
from .event_merger import EventMerger
from .event_translator import EventTranslator, TranslatedEvent
from .exceptions import ICSContentTooLargeError, ICSIngestError
from .models import CanonicalEvent, IngestResult, RecurringEvent
from .preprocessor import preprocess_ics_text
from .validator import validate_event

logger = logging.getLogger(__name__)


class ICSIngestor:
    """Converts raw ICS text into validated canonical events."""

    def __init__(
        self,
        config: Optional[Config] = None,
        sink: Optional[DiagnosticSink] = None,
    ) -> None:
        """Initialize ICS ingestor.

        Args:
            config: Ingestion settings (defaults when None)
            sink: Diagnostic sink (logging sink when None)
        """
        self.config = config or Config()
        self.sink = sink if sink is not None else LoggingDiagnosticSink()

    def ingest(self, text: Union[str, bytes]) -> list[CanonicalEvent]:
        """Ingest one ICS feed.

        Args:
            text: Raw ICS text

        Returns:
            Validated events: base events in component order, then orphaned exceptions
        """
        return self.ingest_with_report(text).events

    def ingest_with_report(self, text: Union[str, bytes]) -> IngestResult:
        """Ingest one ICS feed and report statistics and diagnostics.

        Args:
            text: Raw ICS text

        Returns:
            IngestResult; ``success`` is False only when the whole feed was unusable
        """
        collector = CollectingDiagnosticSink()
        sink = FanOutDiagnosticSink(collector, self.sink)

        try:
            result = self._run(text, sink)
        except ICSIngestError as e:
            report(sink, DiagnosticSeverity.ERROR, e.message)
            result = IngestResult(success=False, error_message=e.message)
        except Exception as e:
            logger.exception("ICS ingestion failed")
            report(sink, DiagnosticSeverity.ERROR, f"ICS ingestion failed: {e}")
            result = IngestResult(success=False, error_message=str(e))

        result.diagnostics = list(collector.diagnostics)
        return result

    def _check_size(self, text: str, sink: DiagnosticSink) -> None:
        size = len(text.encode("utf-8"))
        if size > self.config.max_ics_size_bytes:
            raise ICSContentTooLargeError(
                f"ICS content too large: {size} bytes exceeds limit of "
                f"{self.config.max_ics_size_bytes} bytes"
            )
        if size > self.config.ics_size_warning_bytes:
            report(
                sink,
                DiagnosticSeverity.WARNING,
                f"Large ICS content: {size} bytes (warning threshold "
                f"{self.config.ics_size_warning_bytes} bytes)",
            )

    def _run(self, text: Union[str, bytes], sink: DiagnosticSink) -> IngestResult:
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")

        self._check_size(text, sink)
        if self.config.preprocess:
            text = preprocess_ics_text(text)

        parsed = parse_calendar(text)
        logger.debug("Parsed %d VEVENT components", len(parsed.components))

        translator = EventTranslator(sink)
        base_events: dict[str, TranslatedEvent] = {}
        exceptions: list[tuple[str, TranslatedEvent]] = []
        rejected = 0

        for component in parsed.components:
            event = self._translate_isolated(translator, component, sink)
            if event is None:
                rejected += 1
                continue

            if component.has_recurrence_marker:
                exceptions.append((event.uid, event))
            else:
                if event.uid in base_events:
                    report(
                        sink,
                        DiagnosticSeverity.WARNING,
                        "Duplicate base event uid, keeping the later record",
                        event.uid,
                    )
                base_events[event.uid] = event

        merged = EventMerger(sink).merge(base_events, exceptions)

        events: list[CanonicalEvent] = []
        for candidate in merged:
            with event_context(candidate.uid):
                validated = validate_event(candidate, sink)
            if validated is None:
                rejected += 1
            else:
                events.append(validated)

        logger.debug(
            "Ingested %d events from %d components (%d rejected)",
            len(events),
            len(parsed.components),
            rejected,
        )
        return self._build_result(parsed, events, len(exceptions), rejected)

    def _translate_isolated(
        self,
        translator: EventTranslator,
        component: CalendarComponent,
        sink: DiagnosticSink,
    ) -> Optional[TranslatedEvent]:
        """Translate one component; a failure here never affects other components."""
        uid = ""
        try:
            uid = component.uid
            with event_context(uid):
                return translator.translate(component)
        except Exception as e:
            logger.exception("Failed to translate event component")
            report(sink, DiagnosticSeverity.ERROR, f"Failed to translate event: {e}", uid or None)
            return None

    @staticmethod
    def _build_result(
        parsed: ParsedCalendar,
        events: list[CanonicalEvent],
        exception_count: int,
        rejected: int,
    ) -> IngestResult:
        return IngestResult(
            success=True,
            events=events,
            total_components=len(parsed.components),
            event_count=len(events),
            recurring_event_count=sum(isinstance(e, RecurringEvent) for e in events),
            exception_count=exception_count,
            rejected_count=rejected,
            calendar_name=parsed.calendar_name,
            timezone=parsed.timezone,
            prodid=parsed.prodid,
            ics_version=parsed.ics_version,
        )


def get_events_from_ics(
    text: Union[str, bytes],
    sink: Optional[DiagnosticSink] = None,
    config: Optional[Config] = None,
) -> list[CanonicalEvent]:
    """Ingest one ICS feed (convenience function).

    Args:
        text: Raw ICS text
        sink: Diagnostic sink (logging sink when None)
        config: Ingestion settings (defaults when None)

    Returns:
        Validated canonical events
    """
    return ICSIngestor(config=config, sink=sink).ingest(text)
