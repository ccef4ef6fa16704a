"""RECURRENCE-ID exception folding for ICS ingestion.

Exception records share the uid of their recurring base and carry a
RECURRENCE-ID. Each exception is folded into its base as a skip date; the
exception's own content is not merged into the series.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Optional

from .diagnostics import DiagnosticSeverity, DiagnosticSink, report
from .event_translator import TranslatedEvent
from .models import RecurringEvent, SingleEvent

logger = logging.getLogger(__name__)


class EventMerger:
    """Folds recurrence exceptions into their base series."""

    def __init__(self, sink: Optional[DiagnosticSink] = None) -> None:
        """Initialize event merger.

        Args:
            sink: Diagnostic sink for dropped or orphaned exceptions
        """
        self.sink = sink

    def merge(
        self,
        base_events: Mapping[str, TranslatedEvent],
        exceptions: Sequence[tuple[str, TranslatedEvent]],
    ) -> list[TranslatedEvent]:
        """Fold exception records into their recurring base records.

        - No base with the same uid: the exception is kept as a standalone event.
        - Base is not recurring, or exception is not single: the exception is
          dropped and the base is left untouched.
        - Otherwise the exception's date is appended to the base's skip dates.

        Args:
            base_events: Base records keyed by uid, in component order
            exceptions: (uid, event) pairs for records carrying a RECURRENCE-ID

        Returns:
            Base records (possibly mutated) followed by orphaned exceptions
        """
        orphans: list[TranslatedEvent] = []
        folded = 0

        for uid, exception in exceptions:
            base = base_events.get(uid)
            if base is None:
                report(
                    self.sink,
                    DiagnosticSeverity.INFO,
                    "Recurrence exception has no base event in this feed, keeping it standalone",
                    uid,
                )
                orphans.append(exception)
                continue

            if not isinstance(base, RecurringEvent) or not isinstance(exception, SingleEvent):
                report(
                    self.sink,
                    DiagnosticSeverity.WARNING,
                    "Recurrence exception was recurring or base event was not recurring, "
                    f"dropping exception (base={base.type}, exception={exception.type})",
                    uid,
                )
                continue

            if base.add_skip_date(exception.date):
                folded += 1
                logger.debug("Folded recurrence exception %s on %s into base", uid, exception.date)
            else:
                logger.debug("Skip date %s already present for %s", exception.date, uid)

        if folded:
            logger.debug("Folded %d recurrence exceptions into base events", folded)

        return [*base_events.values(), *orphans]
