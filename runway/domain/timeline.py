"""Pure functions for building day-by-day balance timelines.

The timeline is a fold over the days of a window. Two pieces of state are
threaded from day to day: the running balance and a BurnAccumulator holding
the cumulative forecast burn. Neither mutates the input transactions.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Literal

from runway.dates import format_date, iter_days, month_key, parse_date
from runway.domain.forecast import BurnRate
from runway.domain.models import DateStr, Money, Month, Transaction
from runway.domain.transactions import counted

HealthStatus = Literal["Healthy", "Caution", "Critical"]


@dataclass(frozen=True)
class TimelinePoint:
    """Balance at the end of one day."""

    date: DateStr
    balance: Money
    projected_balance: float | None
    is_future: bool
    is_today: bool


@dataclass(frozen=True)
class BurnAccumulator:
    """Cumulative forecast burn carried between days."""

    cumulative_burn: float = 0.0
    started: bool = False


@dataclass(frozen=True)
class MonthHealth:
    """Lowest point of a timeline and how worrying it is."""

    status: HealthStatus
    lowest_balance: Money
    lowest_date: DateStr


def daily_totals(
    ledger: Iterable[Transaction],
    start: date,
    end: date,
    include_ghosts: bool = False,
) -> dict[date, Money]:
    """Sum counted transactions per day within [start, end]."""
    totals: dict[date, int] = defaultdict(int)
    for txn in counted(ledger, include_ghosts):
        day = parse_date(txn.transaction_date)
        if start <= day <= end:
            totals[day] += txn.amount
    return {day: Money(total) for day, total in totals.items()}


def project_day(
    acc: BurnAccumulator,
    balance: Money,
    burn: BurnRate | None,
    day: date,
) -> tuple[BurnAccumulator, float | None]:
    """Advance the burn accumulator by one day.

    In a projecting month every day from start_day onward adds one more
    rate_per_day of burn. Once burn has started it carries into later months,
    including months that do not project themselves. The carry keys on
    acc.started rather than on a positive cumulative_burn, so a zero or
    negative (net income) total still carries, and it is never reset.

    Returns:
        Tuple of (next_accumulator, projected_balance). projected_balance is
        None when there is nothing to project for the day.
    """
    if burn is not None and burn.is_projected:
        if day.day >= burn.start_day:
            acc = BurnAccumulator(cumulative_burn=acc.cumulative_burn + burn.rate_per_day, started=True)
        return acc, balance - acc.cumulative_burn

    if acc.started:
        return acc, balance - acc.cumulative_burn

    return acc, None


def build_balance_timeline(
    opening_balance: Money,
    ledger: Sequence[Transaction],
    start: str,
    end: str,
    today: str,
    burn_rates: Mapping[Month, BurnRate] | None = None,
    show_projected: bool = False,
    include_ghosts: bool = False,
) -> list[TimelinePoint]:
    """Build the running balance for every day in a window.

    Args:
        opening_balance: Balance immediately before start, in minor units.
        ledger: Transactions; only those dated inside the window are applied.
        start: First day of the window (YYYY-MM-DD).
        end: Last day of the window (YYYY-MM-DD), inclusive.
        today: Today's date (YYYY-MM-DD), used only to tag points.
        burn_rates: Forecast per month, as built by forecast_burn_rates.
        show_projected: Whether to compute projected balances.
        include_ghosts: Whether what-if transactions are applied.

    Returns:
        One TimelinePoint per day, earliest first. A window shorter than two
        days has no meaningful series and returns an empty list.

    Raises:
        ValueError: If a date is malformed or end is before start.
    """
    start_date = parse_date(start)
    end_date = parse_date(end)
    today_date = parse_date(today)

    if end_date < start_date:
        raise ValueError(f"Timeline end {end} is before start {start}")
    if (end_date - start_date).days < 1:
        return []

    totals = daily_totals(ledger, start_date, end_date, include_ghosts)
    project = show_projected and burn_rates is not None

    points: list[TimelinePoint] = []
    balance = opening_balance
    acc = BurnAccumulator()

    for day in iter_days(start_date, end_date):
        balance = Money(balance + totals.get(day, 0))

        projected: float | None = None
        if project:
            assert burn_rates is not None
            acc, projected = project_day(acc, balance, burn_rates.get(month_key(day)), day)

        points.append(
            TimelinePoint(
                date=format_date(day),
                balance=balance,
                projected_balance=projected,
                is_future=day > today_date,
                is_today=day == today_date,
            )
        )

    return points


def balance_on(points: Sequence[TimelinePoint], day: str) -> Money | None:
    """Balance at the end of a day, or None if the day is outside the timeline."""
    target = format_date(parse_date(day))
    for point in points:
        if point.date == target:
            return point.balance
    return None


def summarize_month_health(points: Sequence[TimelinePoint], warning_threshold: Money) -> MonthHealth | None:
    """Find the lowest balance in a timeline and classify it.

    Below zero is Critical, below the warning threshold is Caution, anything
    else is Healthy. The earliest day wins ties.

    Returns:
        MonthHealth, or None for an empty timeline.
    """
    if not points:
        return None

    lowest = min(points, key=lambda p: p.balance)

    status: HealthStatus = "Healthy"
    if lowest.balance < 0:
        status = "Critical"
    elif lowest.balance < warning_threshold:
        status = "Caution"

    return MonthHealth(status=status, lowest_balance=lowest.balance, lowest_date=lowest.date)
