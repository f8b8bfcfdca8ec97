"""Date parsing utilities."""

import calendar
import re
from datetime import date, datetime, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

# YYYYMMDD, optionally followed by HHMMSS[.XXX] and a [offset:TZ] suffix
_OFX_DATE_RE = re.compile(
    r"^(?P<date>\d{8})(?P<time>\d{4,6}(?:\.\d{1,3})?)?\s*(?:\[[^\]]*\])?$"
)


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports various formats including relative dates:
    - Absolute dates: "2024-01-15", "January 15, 2024", etc.
    - Relative dates: "today", "yesterday", "last month", "this year", etc.

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }

    if date_str in relative_dates:
        return relative_dates[date_str]

    if date_str.startswith("last "):
        period = date_str[5:]
        if period == "month":
            return (today - relativedelta(months=1)).replace(day=1)
        elif period == "year":
            return today.replace(month=1, day=1) - relativedelta(years=1)

    elif date_str.startswith("this "):
        period = date_str[5:]
        if period == "month":
            return today.replace(day=1)
        elif period == "year":
            return today.replace(month=1, day=1)

    try:
        dt = date_parser.parse(date_str)
        return dt.date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_ofx_date(value: str) -> date:
    """Parse a statement date (``YYYYMMDD`` or ``YYYYMMDDHHMMSS[.XXX][tz]``).

    The time and timezone parts are discarded: a posted date is a calendar
    day in the bank's own reckoning.

    Raises:
        ValueError: If the value is empty or not a valid date
    """
    cleaned = (value or "").strip()
    match = _OFX_DATE_RE.match(cleaned)
    if match is None:
        raise ValueError(f"Could not parse statement date '{value}'")
    try:
        return datetime.strptime(match.group("date"), "%Y%m%d").date()
    except ValueError as e:
        raise ValueError(f"Could not parse statement date '{value}': {e}")


def month_range(year: int, month: Optional[int] = None) -> tuple[date, date]:
    """Return first and last day of a month, or of the whole year.

    Raises:
        ValueError: If month is outside 1..12
    """
    if month is None:
        return date(year, 1, 1), date(year, 12, 31)
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month {month}: expected 1-12")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def period_key(value: date) -> str:
    """Return the ``YYYY-MM`` period a date falls in."""
    return value.strftime("%Y-%m")
