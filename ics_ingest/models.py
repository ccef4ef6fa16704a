"""Canonical event models for ICS ingestion."""

from __future__ import annotations

import re
from datetime import date
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .diagnostics import Diagnostic

_TIME_OF_DAY_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_iso_date(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if len(value) != 10:
        raise ValueError(f"not an ISO calendar date: {value!r}")
    date.fromisoformat(value)
    return value


class _EventBase(BaseModel):
    """Fields shared by single and recurring events."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        strict=True,
    )

    uid: str = Field(..., min_length=1, description="Identity shared with exception records")
    title: str = Field(default="", description="Event summary, verbatim")
    timezone: Optional[str] = Field(default=None, description="IANA zone, timed events only")
    all_day: bool = Field(..., description="All-day event flag")
    start_time: Optional[str] = Field(default=None, description="HH:MM, timed events only")
    end_time: Optional[str] = Field(default=None, description="HH:MM, timed events only")
    description: str = Field(default="", description="Event description")
    url: Optional[str] = Field(default=None, description="Event URL")

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_of_day(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not _TIME_OF_DAY_RE.match(value):
            raise ValueError(f"not an HH:MM time: {value!r}")
        return value

    @model_validator(mode="after")
    def check_all_day_consistency(self) -> Any:
        if self.all_day:
            if self.timezone is not None or self.start_time is not None or self.end_time is not None:
                raise ValueError("all-day events carry no timezone or time of day")
        elif self.start_time is None or self.end_time is None:
            raise ValueError("timed events need both startTime and endTime")
        return self


class SingleEvent(_EventBase):
    """A unique occurrence."""

    type: Literal["single"] = "single"
    date: str = Field(..., description="Calendar day, YYYY-MM-DD")
    end_date: Optional[str] = Field(default=None, description="Inclusive last day, None when same-day")

    @field_validator("date", "end_date")
    @classmethod
    def validate_dates(cls, value: Optional[str]) -> Optional[str]:
        return _check_iso_date(value)


class RecurringEvent(_EventBase):
    """A rule-driven series."""

    type: Literal["rrule"] = "rrule"
    id: Optional[str] = Field(default=None, description="ics::<uid>::<startDate>::recurring")
    start_date: str = Field(..., description="First occurrence anchor, YYYY-MM-DD")
    end_date: Optional[str] = Field(
        default=None, description="Last day of a multi-day occurrence, None when same-day"
    )
    rrule: str = Field(..., min_length=1, description="Canonical RRULE text")
    skip_dates: list[str] = Field(default_factory=list, description="Excluded dates, YYYY-MM-DD")

    @field_validator("start_date", "end_date")
    @classmethod
    def validate_dates(cls, value: Optional[str]) -> Optional[str]:
        return _check_iso_date(value)

    @field_validator("skip_dates")
    @classmethod
    def validate_skip_dates(cls, value: list[str]) -> list[str]:
        for skip_date in value:
            _check_iso_date(skip_date)
        if len(set(value)) != len(value):
            raise ValueError("skipDates contains duplicates")
        return value

    def add_skip_date(self, skip_date: str) -> bool:
        """Append ``skip_date`` unless already present.

        Returns:
            True if the date was added
        """
        if skip_date in self.skip_dates:
            return False
        self.skip_dates.append(skip_date)
        return True


CanonicalEvent = Annotated[Union[SingleEvent, RecurringEvent], Field(discriminator="type")]


class IngestResult(BaseModel):
    """Result of one ingestion run."""

    success: bool
    events: list[CanonicalEvent] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    # Statistics
    total_components: int = 0
    event_count: int = 0
    recurring_event_count: int = 0
    exception_count: int = 0
    rejected_count: int = 0

    # Calendar metadata
    calendar_name: Optional[str] = None
    timezone: Optional[str] = None
    prodid: Optional[str] = None
    ics_version: Optional[str] = None
    error_message: Optional[str] = None
