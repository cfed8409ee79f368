"""Shared validation utilities"""

from datetime import date, datetime, timezone
from typing import Optional, Union


def parse_datetime(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 timestamp into a timezone-aware datetime.

    A trailing "Z" is accepted and naive values are taken as UTC.

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not value:
            raise ValueError("Timestamp is required")
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_datetime(value: datetime) -> str:
    """Render a datetime as an ISO-8601 string in UTC"""
    return parse_datetime(value).astimezone(timezone.utc).isoformat()


def parse_date(value: Union[str, date, datetime]) -> date:
    """
    Parse a calendar date from yyyy-MM-dd (or take the date part of a datetime).

    Raises:
        ValueError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValueError("Date is required")
    return date.fromisoformat(value[:10])


def format_date(value: Union[str, date, datetime]) -> str:
    """Render a date as yyyy-MM-dd"""
    return parse_date(value).isoformat()


def validate_time_range(start: datetime, end: datetime) -> Optional[str]:
    """Return an error message when end is not after start, None otherwise"""
    if parse_datetime(end) <= parse_datetime(start):
        return "End time must be after start time"
    return None
