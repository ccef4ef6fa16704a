"""ICS text preprocessing.

Some exporters write date-only values without the ``VALUE=DATE`` parameter
(``DTSTART:20240110``). This module injects the missing parameter on the
date-bearing properties before the text reaches the parser.
"""

import logging
import re

logger = logging.getLogger(__name__)

DATE_PROPERTIES = ("DTSTART", "DTEND", "EXDATE", "RECURRENCE-ID")

# NAME[;PARAMS]:YYYYMMDD[,YYYYMMDD...] followed by the line terminator (or end of text)
_BARE_DATE_LINE_RE = re.compile(
    r"^(?P<name>" + "|".join(re.escape(p) for p in DATE_PROPERTIES) + r")"
    r"(?P<params>(?:;[^:\r\n]*)?)"
    r":(?P<value>\d{8}(?:,\d{8})*)"
    r"(?P<eol>\r?\n|$)",
    re.MULTILINE,
)

_VALUE_PARAM_RE = re.compile(r";\s*VALUE\s*=", re.IGNORECASE)


def _add_value_date(match: re.Match) -> str:
    params = match.group("params")
    if _VALUE_PARAM_RE.search(params):
        # Explicit VALUE parameter present; leave it alone
        return match.group(0)
    return (
        f"{match.group('name')}{params};VALUE=DATE:"
        f"{match.group('value')}{match.group('eol')}"
    )


def preprocess_ics_text(text: str) -> str:
    """Inject ``VALUE=DATE`` on bare 8-digit date properties.

    Other parameters (``TZID`` etc.) and the original line terminator (``\\n`` or
    ``\\r\\n``) are preserved. Already-conformant text is returned unchanged.

    Args:
        text: Raw ICS text

    Returns:
        Corrected ICS text

    Examples:
        >>> preprocess_ics_text("DTSTART:20240110\\r\\n")
        'DTSTART;VALUE=DATE:20240110\\r\\n'
        >>> preprocess_ics_text("EXDATE;TZID=UTC:20240304\\n")
        'EXDATE;TZID=UTC;VALUE=DATE:20240304\\n'
    """
    corrected, count = _BARE_DATE_LINE_RE.subn(_add_value_date, text)
    if corrected != text:
        logger.debug("Preprocessor added VALUE=DATE to bare date lines (%d candidates)", count)
    return corrected
