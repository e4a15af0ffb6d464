"""Date utilities for freeagent.

Pure functions for the date and timestamp formats the API uses.
"""

from datetime import date, datetime, timedelta, timezone

from freeagent.domain.models import AccountingPeriod


def format_date(value: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return value.strftime("%Y-%m-%d")


def format_timestamp(value: datetime) -> str:
    """Format a datetime as a UTC ISO-8601 timestamp with milliseconds.

    Naive datetimes are taken to be UTC. This is the format used by
    ``updated_since`` filters, e.g. ``2025-01-31T09:15:00.000Z``.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string.

    Raises:
        ValueError: If the string is not a valid date.
    """
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def default_period(today: date) -> AccountingPeriod:
    """Return the calendar month containing ``today``."""
    start = today.replace(day=1)
    next_month = (start.replace(day=28) + timedelta(days=4)).replace(day=1)
    return AccountingPeriod(start, next_month - timedelta(days=1))
