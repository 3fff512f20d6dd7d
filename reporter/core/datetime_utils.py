"""Centralized datetime utilities for consistent timezone handling.

All functions return naive UTC datetimes for database compatibility
(SQLAlchemy models store naive UTC).

Usage:
    from reporter.core.datetime_utils import utc_now, get_cutoff, add_months

    now = utc_now()
    window_start = get_cutoff(hours=24)
    next_month = add_months(task.scheduled_time, 1)
"""

import calendar
from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Get current UTC time as naive datetime.

    Replaces deprecated datetime.utcnow().
    """
    return datetime.now(UTC).replace(tzinfo=None)


def get_cutoff(hours: int = 0, days: int = 0, now: datetime | None = None) -> datetime:
    """Get cutoff datetime for filtering queries.

    Args:
        hours: Hours to subtract from now
        days: Days to subtract from now
        now: Reference time (defaults to utc_now())

    Returns:
        Naive UTC datetime representing the cutoff point
    """
    delta = timedelta(hours=hours, days=days)
    return (now or utc_now()) - delta


def add_months(value: datetime, months: int) -> datetime:
    """Shift a datetime by whole calendar months.

    The day of month is clamped to the last day of the target month,
    so Jan 31 + 1 month is Feb 28 (or 29 in leap years).

    Args:
        value: Datetime to shift
        months: Number of months to add (may be negative)

    Returns:
        Shifted datetime with the same time of day
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
