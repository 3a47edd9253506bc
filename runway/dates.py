"""Date utilities for runway.

Pure functions for calendar arithmetic, month ranges and date normalization.
Dates cross the engine boundary as YYYY-MM-DD strings and are compared as
``datetime.date`` values everywhere else.
"""

import calendar
import logging
from collections.abc import Iterator
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

from runway.domain.models import DateStr, Month

logger = logging.getLogger(__name__)


def today_in_timezone(timezone: str) -> DateStr:
    """Resolve today's calendar date in a specific timezone.

    Args:
        timezone: IANA timezone name (e.g., "Europe/London").

    Returns:
        Today's date (YYYY-MM-DD). Falls back to the local date if the
        timezone is unknown.
    """
    try:
        now = datetime.now(ZoneInfo(timezone))
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to local date", timezone)
        now = datetime.now()
    return DateStr(now.strftime("%Y-%m-%d"))


def parse_date(raw: str) -> date:
    """Parse a date string into a date.

    Accepts ISO timestamps (the time component is dropped) and unpadded
    month/day parts such as "2024-2-1".

    Args:
        raw: Date string.

    Returns:
        Parsed date.

    Raises:
        ValueError: If the string is empty or not a real calendar date.
    """
    if not raw or not raw.strip():
        raise ValueError("Date is empty")

    head = raw.strip().split("T")[0].split(" ")[0]
    parts = head.split("-")
    if len(parts) != 3 or not all(part.isdigit() for part in parts) or len(parts[0]) != 4:
        raise ValueError(f"Malformed date '{raw}': expected YYYY-MM-DD")

    year, month, day = (int(part) for part in parts)
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValueError(f"Malformed date '{raw}': {e}") from e


def format_date(value: date) -> DateStr:
    """Format a date as YYYY-MM-DD."""
    return DateStr(value.isoformat())


def normalize_date(raw: str) -> DateStr:
    """Normalize any supported date string to YYYY-MM-DD.

    Raises:
        ValueError: If the date is malformed.
    """
    return format_date(parse_date(raw))


def add_interval(value: date, amount: int, period: str) -> date:
    """Advance a date by a number of calendar units.

    Month and year steps clamp to the last day of the target month, so
    2024-01-31 + 1 month is 2024-02-29 and 2024-02-29 + 1 year is 2025-02-28.

    Args:
        value: Starting date.
        amount: Number of units (may be negative).
        period: One of "days", "weeks", "months", "years".

    Returns:
        The advanced date.

    Raises:
        ValueError: If period is unknown.
    """
    if period == "days":
        return value + timedelta(days=amount)
    if period == "weeks":
        return value + timedelta(weeks=amount)
    if period == "months":
        return value + relativedelta(months=amount)
    if period == "years":
        return value + relativedelta(years=amount)
    raise ValueError(f"Unknown recurrence period '{period}'")


def month_key(value: date) -> Month:
    """Month (YYYY-MM) containing a date."""
    return Month(f"{value.year:04d}-{value.month:02d}")


def parse_month(month: str) -> date:
    """Parse a YYYY-MM month into the date of its first day.

    Raises:
        ValueError: If the month is malformed.
    """
    return datetime.strptime(month, "%Y-%m").date()


def days_in_month(month: str) -> int:
    first = parse_month(month)
    return calendar.monthrange(first.year, first.month)[1]


def month_end(month: str) -> date:
    """Last day of a month."""
    return parse_month(month).replace(day=days_in_month(month))


def add_months(month: str, count: int) -> Month:
    """Shift a month by count months (negative goes backwards)."""
    return month_key(parse_month(month) + relativedelta(months=count))


def month_range(month: Month) -> tuple[str, str, str]:
    """Calculate date range and label for a month.

    Args:
        month: Month in YYYY-MM format.

    Returns:
        Tuple of (since_date, until_date, label) where:
        - since_date: First day of month (YYYY-MM-DD)
        - until_date: First day of next month (YYYY-MM-DD)
        - label: Human-readable month (e.g., "January 2025")
    """
    dt = datetime.strptime(month, "%Y-%m")
    since = dt.strftime("%Y-%m-01")
    next_month = (dt.replace(day=28) + timedelta(days=4)).replace(day=1)
    until = next_month.strftime("%Y-%m-%d")
    label = dt.strftime("%B %Y")
    return since, until, label


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def iter_months(start: str, end: str) -> Iterator[Month]:
    """Yield every month from start to end inclusive."""
    current = parse_month(start)
    last = parse_month(end)
    while current <= last:
        yield month_key(current)
        current += relativedelta(months=1)
