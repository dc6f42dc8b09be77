#!/usr/bin/env python3
"""
Local civil date-time handling for job shifts.

A job is stored as a calendar date plus start/end time-of-day strings
("09:00", "17:30:00"). ShiftWindow turns those parts into an absolute
half-open interval [start, end) so overlap checks compare real instants
instead of concatenated strings.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Union
import re

_TIME_PATTERN = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$')


class InvalidTimeError(ValueError):
    """Raised when a date or time-of-day value cannot be parsed."""
    pass


def parse_time_of_day(value: Union[str, time]) -> time:
    """Parse "HH:MM" or "HH:MM:SS" into a time."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise InvalidTimeError(f"Unsupported time value: {value!r}")

    match = _TIME_PATTERN.match(value)
    if not match:
        raise InvalidTimeError(f"Invalid time of day: {value!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    try:
        return time(hour, minute, second)
    except ValueError as e:
        raise InvalidTimeError(f"Invalid time of day: {value!r}") from e


def parse_civil_date(value: Union[str, date, datetime]) -> date:
    """Parse an ISO calendar date; datetimes are truncated to their date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidTimeError(f"Unsupported date value: {value!r}")
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError as e:
        raise InvalidTimeError(f"Invalid date: {value!r}") from e


def format_time_of_day(value: Union[str, time]) -> str:
    """Normalise a time of day to the stored "HH:MM" form (seconds kept when set)."""
    parsed = parse_time_of_day(value)
    if parsed.second:
        return parsed.strftime('%H:%M:%S')
    return parsed.strftime('%H:%M')


@dataclass(frozen=True)
class ShiftWindow:
    """Half-open local civil interval [start, end)."""
    start: datetime
    end: datetime

    @classmethod
    def from_parts(
        cls,
        job_date: Union[str, date, datetime],
        start_time: Union[str, time],
        end_time: Union[str, time],
    ) -> "ShiftWindow":
        day = parse_civil_date(job_date)
        start = datetime.combine(day, parse_time_of_day(start_time))
        end = datetime.combine(day, parse_time_of_day(end_time))
        if end <= start:
            raise InvalidTimeError(
                f"End time {end_time!r} must be after start time {start_time!r}"
            )
        return cls(start=start, end=end)

    def overlaps(self, other: "ShiftWindow") -> bool:
        # Touching windows (one ends exactly when the other starts) do not overlap.
        return self.start < other.end and self.end > other.start

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600
