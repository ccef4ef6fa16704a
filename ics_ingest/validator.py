"""Final schema validation of canonical events."""

import logging
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from .diagnostics import DiagnosticSeverity, DiagnosticSink, report
from .models import CanonicalEvent

logger = logging.getLogger(__name__)

_EVENT_ADAPTER: TypeAdapter[CanonicalEvent] = TypeAdapter(CanonicalEvent)


def validate_event(
    event: Any, sink: Optional[DiagnosticSink] = None
) -> Optional[CanonicalEvent]:
    """Strictly re-validate a candidate event against the output schema.

    Candidates are built without validation by the translator and may be mutated
    by the merger, so every one goes through this check before leaving the engine.

    Args:
        event: Candidate SingleEvent/RecurringEvent (or a mapping of its fields)
        sink: Diagnostic sink for rejections

    Returns:
        A freshly validated event, or None when the candidate fails validation
    """
    data = dict(event) if not isinstance(event, dict) else event
    uid = data.get("uid") if isinstance(data.get("uid"), str) else None
    try:
        return _EVENT_ADAPTER.validate_python(data)
    except ValidationError as e:
        logger.debug("Schema validation failed for %r: %s", uid, e)
        report(
            sink,
            DiagnosticSeverity.WARNING,
            f"Dropping event that failed schema validation: {e.error_count()} error(s), "
            f"first: {e.errors()[0]['msg']}",
            uid or None,
        )
        return None
