"""
Date helpers shared by the task tools and the recurrence engine.

Due dates are carried as timezone-aware datetimes pinned to noon so that a
date never slips to the neighbouring day when it is shifted between
timezones or across a DST change.
"""
from datetime import datetime, timedelta, tzinfo
from typing import Optional, Union

from dateutil import parser as date_parser

NOON = 12

RELATIVE_DAYS = {
    "today": 0,
    "tomorrow": 1,
    "yesterday": -1,
}


def now_local() -> datetime:
    """Current time as an aware datetime in the local timezone."""
    return datetime.now().astimezone()


def at_noon(value: datetime) -> datetime:
    """Return ``value`` with its time of day set to 12:00:00."""
    return value.replace(hour=NOON, minute=0, second=0, microsecond=0)


def ensure_aware(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Attach ``tz`` (local timezone by default) to a naive datetime."""
    if value.tzinfo is not None:
        return value
    if tz is None:
        tz = now_local().tzinfo
    return value.replace(tzinfo=tz)


def parse_date(value: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse a user supplied date expression.

    Accepts ``today``, ``tomorrow`` and ``yesterday`` (case-insensitive)
    relative to ``now``, or any ISO-8601 date/datetime string. The result is
    always normalized to noon.

    Args:
        value: Date expression, e.g. "tomorrow" or "2025-02-03"
        now: Reference time; defaults to the current local time

    Returns:
        Aware datetime at noon, or None if the expression cannot be parsed
    """
    if not value or not isinstance(value, str):
        return None

    today = at_noon(now if now is not None else now_local())
    today = ensure_aware(today)

    lower = value.strip().lower()
    if lower in RELATIVE_DAYS:
        return today + timedelta(days=RELATIVE_DAYS[lower])

    try:
        parsed = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError):
        return None

    return at_noon(ensure_aware(parsed, today.tzinfo))


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a timestamp read back from the store without touching its time of day."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    try:
        return ensure_aware(date_parser.isoparse(value))
    except (ValueError, OverflowError, TypeError):
        return None


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime for the store."""
    if value is None:
        return None
    return ensure_aware(value).isoformat()


def format_date(value: Union[str, datetime, None]) -> str:
    """
    Render a date for display, e.g. ``Feb 3, 2025``.

    Returns an empty string for missing or unparseable input.
    """
    if not value:
        return ""
    parsed = parse_timestamp(value)
    if parsed is None:
        return ""
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def weekday_number(value: datetime) -> int:
    """Weekday as 1=Sunday .. 7=Saturday."""
    # datetime.weekday() is 0=Monday .. 6=Sunday
    return (value.weekday() + 1) % 7 + 1
