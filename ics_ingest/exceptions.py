"""ICS ingestion exceptions for error handling."""

from typing import Optional


class ICSIngestError(Exception):
    """Base exception for ICS ingestion errors."""

    def __init__(self, message: str, uid: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.uid = uid


class ICSParseError(ICSIngestError):
    """Exception raised when ICS content cannot be tokenized at all."""


class ICSContentTooLargeError(ICSIngestError):
    """Exception raised when ICS content exceeds the configured size limit."""


class InvalidInstantError(ICSIngestError):
    """Exception raised when an invalid ZonedInstant is read."""


class ConfigError(ICSIngestError):
    """Exception raised when a configuration file is malformed."""
