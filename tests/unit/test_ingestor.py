"""Unit tests for ics_ingest.ingestor module (end-to-end pipeline behavior)."""

import pytest

from ics_ingest import get_events_from_ics
from ics_ingest.config import Config
from ics_ingest.diagnostics import Diagnostic, DiagnosticSeverity
from ics_ingest.event_translator import EventTranslator
from ics_ingest.ingestor import ICSIngestor
from ics_ingest.models import RecurringEvent, SingleEvent

pytestmark = pytest.mark.unit


def timed_vevent(uid: str, day: str = "20240115", summary: str = "Event") -> str:
    return (
        "BEGIN:VEVENT\n"
        f"UID:{uid}\n"
        f"DTSTART:{day}T100000Z\n"
        f"DTEND:{day}T110000Z\n"
        f"SUMMARY:{summary}\n"
        "END:VEVENT"
    )


class TestIngestPipeline:
    """Tests for ICSIngestor.ingest end-to-end behavior."""

    @pytest.fixture(autouse=True)
    def _setup(self, build_ics, sink):
        self.build_ics = build_ics
        self.sink = sink
        self.ingestor = ICSIngestor(sink=sink)

    def test_all_day_multi_day_end_date(self):
        """Test a 2024-01-10..2024-01-12 all-day event ends inclusively on 2024-01-11."""
        events = self.ingestor.ingest(
            self.build_ics(
                "BEGIN:VEVENT\nUID:trip\nDTSTART;VALUE=DATE:20240110\nDTEND;VALUE=DATE:20240112\nEND:VEVENT"
            )
        )

        assert len(events) == 1
        data = events[0].model_dump(by_alias=True)
        assert data["date"] == "2024-01-10"
        assert data["endDate"] == "2024-01-11"
        assert data["allDay"] is True

    def test_exdate_and_recurrence_exception_both_skip(self, sample_ics_series_with_exceptions):
        """Test EXDATE and a RECURRENCE-ID exception both land in skipDates."""
        events = self.ingestor.ingest(sample_ics_series_with_exceptions)

        assert len(events) == 1
        series = events[0]
        assert isinstance(series, RecurringEvent)
        assert series.skip_dates == ["2024-03-04", "2024-03-11"]
        assert series.title == "Standup"
        assert self.sink.by_severity(DiagnosticSeverity.WARNING) == []

    def test_rejected_start_is_absent_with_one_diagnostic(self):
        """Test an unreadable start drops only that event and reports it once."""
        events = self.ingestor.ingest(
            self.build_ics(
                timed_vevent("good-1"),
                "BEGIN:VEVENT\nUID:bad-1\nDTSTART:tomorrow-ish\nSUMMARY:Bad\nEND:VEVENT",
                timed_vevent("good-2", "20240116"),
            )
        )

        assert [e.uid for e in events] == ["good-1", "good-2"]
        assert len(self.sink.for_uid("bad-1")) == 1

    def test_idempotent(self, sample_ics_series_with_exceptions):
        """Test two runs over the same text produce identical output."""
        text = sample_ics_series_with_exceptions + self.build_ics(timed_vevent("extra"))

        first = [e.model_dump() for e in self.ingestor.ingest(text)]
        second = [e.model_dump() for e in self.ingestor.ingest(text)]

        assert first == second
        assert len(first) == 2

    def test_orphan_exception_is_emitted_after_bases(self):
        """Test an exception without a base survives as a single event at the end."""
        events = self.ingestor.ingest(
            self.build_ics(
                "BEGIN:VEVENT\nUID:orphan\nRECURRENCE-ID:20240311T090000Z\n"
                "DTSTART:20240311T100000Z\nSUMMARY:Lonely\nEND:VEVENT",
                timed_vevent("base-1"),
            )
        )

        assert [e.uid for e in events] == ["base-1", "orphan"]
        assert isinstance(events[1], SingleEvent)
        assert events[1].title == "Lonely"

    def test_exception_for_non_recurring_base_is_dropped(self):
        """Test an exception pointing at a single event is discarded."""
        events = self.ingestor.ingest(
            self.build_ics(
                timed_vevent("one"),
                "BEGIN:VEVENT\nUID:one\nRECURRENCE-ID:20240115T100000Z\n"
                "DTSTART:20240115T120000Z\nEND:VEVENT",
            )
        )

        assert len(events) == 1
        assert events[0].start_time == "10:00"
        assert len(self.sink.by_severity(DiagnosticSeverity.WARNING)) == 1

    def test_duplicate_uid_last_wins_at_first_position(self):
        """Test duplicate base records keep the first position and the last content."""
        events = self.ingestor.ingest(
            self.build_ics(
                timed_vevent("dup", summary="First"),
                timed_vevent("other"),
                timed_vevent("dup", summary="Second"),
            )
        )

        assert [(e.uid, e.title) for e in events] == [("dup", "Second"), ("other", "Event")]
        assert len(self.sink.for_uid("dup")) == 1

    def test_bare_dates_are_preprocessed(self):
        """Test feeds with bare dates produce all-day events."""
        events = self.ingestor.ingest(
            self.build_ics("BEGIN:VEVENT\nUID:bare\nDTSTART:20240110\nDTEND:20240112\nEND:VEVENT")
        )

        assert events[0].all_day is True
        assert events[0].end_date == "2024-01-11"

    def test_translation_failure_is_isolated(self, monkeypatch):
        """Test an unexpected error in one component leaves the others intact."""
        original = EventTranslator.translate

        def flaky_translate(translator, component):
            if component.uid == "boom":
                raise RuntimeError("unexpected")
            return original(translator, component)

        monkeypatch.setattr(EventTranslator, "translate", flaky_translate)

        events = self.ingestor.ingest(
            self.build_ics(timed_vevent("before"), timed_vevent("boom"), timed_vevent("after"))
        )

        assert [e.uid for e in events] == ["before", "after"]
        errors = self.sink.by_severity(DiagnosticSeverity.ERROR)
        assert len(errors) == 1
        assert errors[0].uid == "boom"

    def test_failing_sink_does_not_abort(self, sample_ics_series_with_exceptions):
        """Test a sink that raises cannot stop ingestion."""

        class ExplodingSink:
            def emit(self, diagnostic: Diagnostic) -> None:
                raise RuntimeError("sink down")

        ingestor = ICSIngestor(sink=ExplodingSink())
        text = sample_ics_series_with_exceptions + self.build_ics(
            "BEGIN:VEVENT\nUID:x\nDTSTART:garbage\nEND:VEVENT"
        )

        events = ingestor.ingest(text)

        assert len(events) == 1

    def test_bytes_input(self, sample_ics_simple):
        """Test raw bytes are decoded as UTF-8."""
        events = self.ingestor.ingest(sample_ics_simple.encode("utf-8"))

        assert [e.uid for e in events] == ["simple-1@example.com"]


class TestWholeFeedFailures:
    """Tests for feeds that cannot be processed at all."""

    @pytest.mark.parametrize("text", ["", "this is not a calendar"])
    def test_unparseable_feed_yields_empty_list_and_error(self, sink, text):
        """Test parse failures yield no events and one error diagnostic."""
        events = ICSIngestor(sink=sink).ingest(text)

        assert events == []
        assert [d.severity for d in sink.diagnostics] == [DiagnosticSeverity.ERROR]

    def test_calendar_without_events(self, sink, build_ics):
        """Test an empty calendar is a success with no events."""
        result = ICSIngestor(sink=sink).ingest_with_report(build_ics())

        assert result.success
        assert result.events == []
        assert len(sink) == 0

    def test_oversized_feed_rejected(self, sink, sample_ics_simple):
        """Test feeds above the size limit are rejected."""
        config = Config(max_ics_size_bytes=100, ics_size_warning_bytes=50)

        result = ICSIngestor(config=config, sink=sink).ingest_with_report(sample_ics_simple)

        assert not result.success
        assert result.events == []
        assert "too large" in result.error_message
        assert [d.severity for d in result.diagnostics] == [DiagnosticSeverity.ERROR]

    def test_large_feed_warns(self, sink, sample_ics_simple):
        """Test feeds above the warning threshold are processed with a warning."""
        config = Config(ics_size_warning_bytes=100)

        events = ICSIngestor(config=config, sink=sink).ingest(sample_ics_simple)

        assert len(events) == 1
        assert len(sink.by_severity(DiagnosticSeverity.WARNING)) == 1


class TestIngestReport:
    """Tests for ICSIngestor.ingest_with_report statistics."""

    def test_statistics_and_metadata(self, sink, build_ics):
        """Test counts and calendar metadata are reported."""
        text = build_ics(
            timed_vevent("single-1"),
            "BEGIN:VEVENT\nUID:series\nDTSTART;VALUE=DATE:20240304\nRRULE:FREQ=WEEKLY\nEND:VEVENT",
            "BEGIN:VEVENT\nUID:series\nRECURRENCE-ID;VALUE=DATE:20240311\n"
            "DTSTART;VALUE=DATE:20240311\nEND:VEVENT",
            "BEGIN:VEVENT\nUID:broken\nDTSTART:nope\nEND:VEVENT",
            header="X-WR-CALNAME:Team\nX-WR-TIMEZONE:Europe/Berlin",
        )

        result = ICSIngestor(sink=sink).ingest_with_report(text)

        assert result.success
        assert result.total_components == 4
        assert result.event_count == 2
        assert result.recurring_event_count == 1
        assert result.exception_count == 1
        assert result.rejected_count == 1
        assert result.calendar_name == "Team"
        assert result.timezone == "Europe/Berlin"
        assert result.ics_version == "2.0"
        assert result.events[1].skip_dates == ["2024-03-11"]
        assert result.diagnostics == sink.diagnostics

    def test_report_serializes_to_json(self, sink, sample_ics_simple):
        """Test the report dumps to JSON-compatible data."""
        data = ICSIngestor(sink=sink).ingest_with_report(sample_ics_simple).model_dump(
            mode="json", by_alias=True
        )

        assert data["events"][0]["startTime"] == "10:00"
        assert data["event_count"] == 1


class TestGetEventsFromIcs:
    """Tests for the get_events_from_ics convenience function."""

    def test_default_sink_logs(self, caplog, build_ics):
        """Test diagnostics go to the ics_ingest.diagnostics logger by default."""
        text = build_ics("BEGIN:VEVENT\nUID:bad\nDTSTART:nope\nEND:VEVENT", timed_vevent("ok"))

        with caplog.at_level("DEBUG", logger="ics_ingest.diagnostics"):
            events = get_events_from_ics(text)

        assert [e.uid for e in events] == ["ok"]
        assert any(r.name == "ics_ingest.diagnostics" and r.levelname == "WARNING" for r in caplog.records)


class TestIngestorSink:
    """Tests for the diagnostic sink wiring of ICSIngestor."""

    def test_injected_empty_sink_is_kept(self, sink, build_ics):
        """Test an empty collecting sink is used as given and receives diagnostics."""
        ingestor = ICSIngestor(sink=sink)
        text = build_ics("BEGIN:VEVENT\nUID:bad\nDTSTART:nope\nEND:VEVENT", timed_vevent("ok"))

        events = ingestor.ingest(text)

        assert ingestor.sink is sink
        assert [e.uid for e in events] == ["ok"]
        assert len(sink.for_uid("bad")) == 1
