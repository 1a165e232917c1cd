# File: utils/dt_utils.py
"""Date and time utilities for WonderNest.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Functions:
    - dt_now_utc: Get current datetime in UTC
    - dt_to_iso: Serialize a datetime to an ISO string
    - dt_parse: Parse an ISO string into an aware datetime
    - dt_parse_date: Parse an ISO date string
    - parse_time_of_day: Parse "HH:MM" strings
    - format_time_of_day: Format a time as "HH:MM"
    - is_time_in_window: Inclusive clock-window check with midnight wraparound
    - elapsed_minutes: Whole minutes between two datetimes
    - is_same_day: Calendar-day equality
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
import logging

from dateutil import parser as dt_parser

_LOGGER = logging.getLogger(__name__)

MINUTES_PER_HOUR = 60
SECONDS_PER_MINUTE = 60


def dt_now_utc() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def dt_to_iso(value: datetime | None) -> str | None:
    """Serialize a datetime to ISO 8601, treating naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def dt_parse(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 string (or pass through a datetime) as an aware datetime.

    Naive results are assumed to be UTC. Unparseable strings return None and are
    logged, never raised.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = dt_parser.isoparse(value)
        except (TypeError, ValueError) as err:
            _LOGGER.warning("Could not parse datetime '%s': %s", value, err)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def dt_parse_date(value: str | date | None) -> date | None:
    """Parse an ISO date string ("YYYY-MM-DD")."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as err:
        _LOGGER.warning("Could not parse date '%s': %s", value, err)
        return None


def parse_time_of_day(value: str | time | None) -> time | None:
    """Parse a clock time such as "9:00" or "20:30".

    Raises:
        ValueError: When the value is not a valid HH:MM clock time.
    """
    if value is None or isinstance(value, time):
        return value
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time of day '{value}'")
    hour, minute = int(parts[0]), int(parts[1])
    return time(hour=hour, minute=minute)


def format_time_of_day(value: time | None) -> str | None:
    """Format a clock time as zero-padded HH:MM."""
    if value is None:
        return None
    return f"{value.hour:02d}:{value.minute:02d}"


def _minutes_of_day(value: time) -> int:
    return value.hour * MINUTES_PER_HOUR + value.minute


def is_time_in_window(current: time, start: time, end: time) -> bool:
    """Return True if ``current`` falls inside the inclusive [start, end] window.

    When start is later than end the window wraps past midnight, so
    20:00-08:00 admits 23:00 and 02:00 but not 10:00.
    """
    current_minutes = _minutes_of_day(current)
    start_minutes = _minutes_of_day(start)
    end_minutes = _minutes_of_day(end)

    if start_minutes <= end_minutes:
        return start_minutes <= current_minutes <= end_minutes
    return current_minutes >= start_minutes or current_minutes <= end_minutes


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Return whole minutes elapsed between two datetimes (never negative)."""
    seconds = (end - start).total_seconds()
    return max(0, int(seconds // SECONDS_PER_MINUTE))


def is_same_day(first: date | datetime, second: date | datetime) -> bool:
    """Calendar-day equality; datetimes are compared in their own time zone."""
    if isinstance(first, datetime):
        first = first.date()
    if isinstance(second, datetime):
        second = second.date()
    return first == second
