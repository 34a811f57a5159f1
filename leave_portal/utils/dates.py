"""
Date helpers for leave ranges and display.

All functions accept ``datetime.date`` objects or ISO ``YYYY-MM-DD`` strings.
"""

import datetime as dt
from typing import Union

DateLike = Union[dt.date, str]

DISPLAY_FORMAT = "%b %d, %Y"


def parse_date(value: DateLike) -> dt.date:
    """Parse an ISO date string (datetime strings are truncated to the date)."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return dt.date.fromisoformat(value.strip()[:10])


def format_date(value: DateLike, fmt: str = DISPLAY_FORMAT) -> str:
    """Format a date for display, e.g. ``Mar 10, 2025``."""
    return parse_date(value).strftime(fmt)


def calculate_days(start: DateLike, end: DateLike) -> int:
    """Inclusive number of calendar days from start to end."""
    return (parse_date(end) - parse_date(start)).days + 1


def is_date_in_range(value: DateLike, start: DateLike, end: DateLike) -> bool:
    """Check start <= value <= end."""
    return parse_date(start) <= parse_date(value) <= parse_date(end)


def next_business_day(value: DateLike) -> dt.date:
    """First day after ``value`` that is not a Saturday or Sunday."""
    day = parse_date(value) + dt.timedelta(days=1)
    while day.weekday() >= 5:
        day += dt.timedelta(days=1)
    return day
