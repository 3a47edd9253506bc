"""Pure functions for burn-rate forecasting.

The forecast is a flat linear burn-down: whatever is left of each variable
category's plan for the month is assumed to be spent (or, for income, to
arrive) evenly over the days that remain. Fixed categories are excluded, since
their timing is already captured by scheduled transactions.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from runway.dates import days_in_month, month_key, parse_date, parse_month
from runway.domain.budget import OverrideIndex, category_actual, resolve_planned_amount
from runway.domain.models import BudgetGroup, BudgetOverride, Month, Transaction

FORECAST_GROUP_TYPES = ("expense", "goal", "income")


@dataclass(frozen=True)
class BurnRate:
    """Forecasted daily burn for a month.

    rate_per_day is in minor units and may be negative when expected income
    outweighs expected spending (the balance trends up).
    """

    rate_per_day: float
    start_day: int
    is_projected: bool


NO_FORECAST = BurnRate(rate_per_day=0.0, start_day=0, is_projected=False)


def forecast_burn_rate(
    month: Month,
    today: str,
    groups: Sequence[BudgetGroup],
    overrides: OverrideIndex | Sequence[BudgetOverride],
    ledger: Sequence[Transaction],
) -> BurnRate:
    """Forecast the daily burn for a month.

    Args:
        month: Month to forecast (YYYY-MM).
        today: Today's date (YYYY-MM-DD).
        groups: Budget groups with their categories.
        overrides: Monthly overrides (index or list).
        ledger: Transactions covering at least the month.

    Returns:
        BurnRate. Months before today's month return NO_FORECAST. In today's
        month the burn starts today; in later months it starts on the 1st.

    Raises:
        ValueError: If month or today is malformed.
    """
    today_date = parse_date(today)
    current_month = month_key(today_date)
    month = month_key(parse_month(month))

    if parse_month(month) < parse_month(current_month):
        return NO_FORECAST

    start_day = today_date.day if month == current_month else 1
    divisor = days_in_month(month) - start_day + 1

    total_remaining = 0
    for group in groups:
        if group.type not in FORECAST_GROUP_TYPES:
            continue
        for category in group.categories:
            if category.is_fixed:
                continue
            planned = resolve_planned_amount(category, month, overrides)
            actual = category_actual(category.name, group.type, ledger, month)
            remaining = max(0, planned - actual)

            # Expected income offsets the burn
            if group.type == "income":
                total_remaining -= remaining
            else:
                total_remaining += remaining

    return BurnRate(rate_per_day=total_remaining / divisor, start_day=start_day, is_projected=True)


def forecast_burn_rates(
    months: Iterable[Month],
    today: str,
    groups: Sequence[BudgetGroup],
    overrides: OverrideIndex | Sequence[BudgetOverride],
    ledger: Sequence[Transaction],
) -> dict[Month, BurnRate]:
    """Forecast every month in a window, keyed by month."""
    return {month: forecast_burn_rate(month, today, groups, overrides, ledger) for month in months}
