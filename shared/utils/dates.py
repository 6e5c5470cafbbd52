"""
shared/utils/dates.py
UTC helpers. Drivers without timezone support hand back naive datetimes;
everything stored by this service is UTC, so naive values are read as UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def end_of_day(value: date) -> datetime:
    return datetime.combine(value, time.max, tzinfo=timezone.utc)


def month_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """[first instant of the current month, now]."""
    now = now or utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), now


def previous_window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """The window of equal length immediately preceding [start, end)."""
    span = end - start
    return start - span, start


def previous_month_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """[first instant of last month, first instant of this month)."""
    this_month, _ = month_window(now)
    last_month = (this_month - timedelta(days=1)).replace(day=1)
    return last_month, this_month


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) - timedelta(days=days)
