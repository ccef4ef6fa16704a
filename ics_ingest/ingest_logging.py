"""
Central logging configuration for ics_ingest.

Stamps every record with the uid of the event being translated so that log lines
from the normalizer, translator and merger can be correlated per event.
"""

import logging
import os
from typing import Optional

from .diagnostics import current_event_uid

LOG_FORMAT = "[%(asctime)s] [%(event_uid)s] %(levelname)s - %(name)s - %(message)s"


class EventUidFilter(logging.Filter):
    """Add the current event uid to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add event uid to log record.

        Args:
            record: Log record to enhance

        Returns:
            True to allow record to be logged
        """
        uid = getattr(record, "diagnostic_uid", None)
        if not uid or uid == "-":
            uid = current_event_uid.get() or "-"
        record.event_uid = uid
        return True


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for ics_ingest.

    Args:
        debug_mode: Whether to enable debug logging for ics_ingest modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        ICS_INGEST_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        ICS_INGEST_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("ICS_INGEST_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("ICS_INGEST_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    uid_filter = EventUidFilter()

    # Only add a handler if none exist, to avoid duplicate output
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(uid_filter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            if not any(isinstance(f, EventUidFilter) for f in existing_handler.filters):
                existing_handler.addFilter(uid_filter)

    package_level = logging.DEBUG if final_debug else logging.INFO
    logger_config: dict[str, int] = {
        # Keep some ICS parsing info from the library
        "icalendar": logging.INFO,
        "ics_ingest": package_level,
        "ics_ingest.diagnostics": package_level,
    }

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    root_logger.debug("ics_ingest logging configured (debug=%s)", final_debug)


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("ics_ingest", "ics_ingest.diagnostics", "icalendar"):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
