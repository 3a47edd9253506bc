"""Pure functions for budget calculations and logic.

This module contains the functional core for budget operations:
- Resolving the planned amount for a category in a month
- Planning override writes when a planned amount is edited
- Per-category actuals and spending history

All monetary amounts are in minor units (Money type).
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from runway.dates import add_months, month_key, parse_date, parse_month
from runway.domain.models import BudgetCategory, BudgetGroup, BudgetOverride, CategoryName, Money, Month, Transaction
from runway.domain.transactions import counted

# Months of old-base overrides written when a base amount changes going forward
BACKFILL_MONTHS = 12

OverrideIndex = Mapping[tuple[int, Month], Money]


@dataclass(frozen=True)
class BaseAmountChange:
    """Writes needed to change a base planned amount from a month onward."""

    category_id: int
    new_base: Money
    backfill: tuple[BudgetOverride, ...]
    clear_from: Month


@dataclass(frozen=True)
class CategoryStats:
    """Immutable budget figures for a single category in a month."""

    category: CategoryName
    group_type: str
    planned: Money
    actual: Money
    remaining: Money
    spent_last_month: Money
    average_spent: Money
    is_fixed: bool


def index_overrides(
    overrides: Iterable[BudgetOverride],
    known_category_ids: Iterable[int] | None = None,
) -> dict[tuple[int, Month], Money]:
    """Index overrides by (category_id, month) for O(1) resolution.

    Args:
        overrides: Override records.
        known_category_ids: If given, every override must reference one of these.

    Returns:
        Dictionary mapping (category_id, month) to amount.

    Raises:
        ValueError: If two overrides share a key or one references an unknown category.
    """
    known = set(known_category_ids) if known_category_ids is not None else None
    index: dict[tuple[int, Month], Money] = {}

    for override in overrides:
        parse_month(override.month)
        if known is not None and override.category_id not in known:
            raise ValueError(f"Override for {override.month} references unknown category {override.category_id}")
        key = (override.category_id, override.month)
        if key in index:
            raise ValueError(f"Duplicate override for category {override.category_id} in {override.month}")
        index[key] = override.amount

    return index


def resolve_planned_amount(
    category: BudgetCategory,
    month: Month,
    overrides: OverrideIndex | Sequence[BudgetOverride],
) -> Money:
    """Resolve the effective planned amount for a category in a month.

    An override for (category, month) wins over the category's base amount.
    Lookup is O(1) with an index from index_overrides; a plain sequence of
    overrides is scanned linearly, O(n).

    Args:
        category: Budget category.
        month: Month in YYYY-MM format.
        overrides: Override index or override list.

    Returns:
        Planned amount in minor units.
    """
    if isinstance(overrides, Mapping):
        return overrides.get((category.id, month), category.planned_amount)

    for override in overrides:
        if override.category_id == category.id and override.month == month:
            return override.amount
    return category.planned_amount


def plan_single_month_override(category: BudgetCategory, month: Month, amount: Money) -> BudgetOverride:
    """Plan a change to a category's amount for just one month.

    Raises:
        ValueError: If the amount is negative or the month is malformed.
    """
    if amount < 0:
        raise ValueError("Amount must be positive")
    parse_month(month)
    return BudgetOverride(category_id=category.id, month=month, amount=amount)


def plan_base_amount_change(
    category: BudgetCategory,
    new_amount: Money,
    month: Month,
    overrides: OverrideIndex | Sequence[BudgetOverride],
    backfill_months: int = BACKFILL_MONTHS,
) -> BaseAmountChange:
    """Plan a change to a category's base amount from a month onward.

    Prior months that have no override of their own get one pinned to the old
    base so their resolution does not change. Overrides from the month onward
    are cleared so the new base applies.

    Args:
        category: Budget category being edited.
        new_amount: New base amount in minor units.
        month: First month the new base applies to.
        overrides: Existing overrides (index or list).
        backfill_months: How many prior months to pin.

    Returns:
        BaseAmountChange for the store to execute.

    Raises:
        ValueError: If the amount is negative or the month is malformed.
    """
    if new_amount < 0:
        raise ValueError("Amount must be positive")
    parse_month(month)

    if isinstance(overrides, Mapping):
        existing = set(overrides.keys())
    else:
        existing = {(o.category_id, o.month) for o in overrides}

    backfill: list[BudgetOverride] = []
    for offset in range(backfill_months, 0, -1):
        prior = add_months(month, -offset)
        if (category.id, prior) not in existing:
            backfill.append(BudgetOverride(category_id=category.id, month=prior, amount=category.planned_amount))

    return BaseAmountChange(
        category_id=category.id,
        new_base=new_amount,
        backfill=tuple(backfill),
        clear_from=month,
    )


def category_actual(
    category: CategoryName,
    group_type: str,
    ledger: Iterable[Transaction],
    month: Month,
) -> Money:
    """Sum a category's activity in a month.

    Income categories count inflows, expense and goal categories count
    outflows. Skipped and ghost transactions never count.

    Returns:
        Absolute total in minor units.
    """
    total = 0
    for txn in counted(ledger):
        if txn.category != category:
            continue
        if month_key(parse_date(txn.transaction_date)) != month:
            continue
        if group_type == "income" and txn.amount > 0:
            total += txn.amount
        elif group_type != "income" and txn.amount < 0:
            total += abs(txn.amount)
    return Money(total)


def spending_history(
    category: CategoryName,
    group_type: str,
    ledger: Sequence[Transaction],
    month: Month,
    months: int = 6,
) -> list[tuple[Month, Money]]:
    """Per-month actuals for a category, oldest first, ending with month."""
    return [
        (past, category_actual(category, group_type, ledger, past))
        for past in (add_months(month, -offset) for offset in range(months - 1, -1, -1))
    ]


def compute_category_stats(
    groups: Sequence[BudgetGroup],
    overrides: OverrideIndex | Sequence[BudgetOverride],
    ledger: Sequence[Transaction],
    month: Month,
    history_months: int = 6,
) -> list[CategoryStats]:
    """Compute budget figures for every category, in group and category order.

    The average covers the history_months months before month.
    """
    stats: list[CategoryStats] = []
    previous = add_months(month, -1)

    for group in groups:
        for category in group.categories:
            planned = resolve_planned_amount(category, month, overrides)
            actual = category_actual(category.name, group.type, ledger, month)
            history = spending_history(category.name, group.type, ledger, previous, history_months)
            total = sum(amount for _, amount in history)
            average = Money(round(total / history_months)) if history_months else Money(0)

            stats.append(
                CategoryStats(
                    category=category.name,
                    group_type=group.type,
                    planned=planned,
                    actual=actual,
                    remaining=Money(planned - actual),
                    spent_last_month=history[-1][1] if history else Money(0),
                    average_spent=average,
                    is_fixed=category.is_fixed,
                )
            )

    return stats
