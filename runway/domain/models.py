"""Domain type definitions for runway.

These NewTypes provide semantic clarity and help with type checking:
- Money: Amount in minor units (pence/cents)
- Month: Month in YYYY-MM format
- DateStr: Calendar date in YYYY-MM-DD format
- CategoryName: Name of a budget category

The dataclasses are the immutable records passed between the store and the
functional core.
"""

from dataclasses import dataclass, field
from typing import Literal, NewType

# Money amounts are stored as minor units to avoid floating point errors
Money = NewType("Money", int)

# Month is always in YYYY-MM format (e.g., "2025-01")
Month = NewType("Month", str)

# Dates cross the engine boundary as YYYY-MM-DD strings
DateStr = NewType("DateStr", str)

# Category name for budget categories
CategoryName = NewType("CategoryName", str)

TransactionType = Literal["income", "expense", "goal", "transfer"]
TransactionStatus = Literal["cleared", "pending", "expected", "skipped"]
GroupType = Literal["income", "expense", "goal"]
RecurPeriod = Literal["days", "weeks", "months", "years"]

TRANSACTION_TYPES: tuple[str, ...] = ("income", "expense", "goal", "transfer")
TRANSACTION_STATUSES: tuple[str, ...] = ("cleared", "pending", "expected", "skipped")
GROUP_TYPES: tuple[str, ...] = ("income", "expense", "goal")
RECUR_PERIODS: tuple[str, ...] = ("days", "weeks", "months", "years")


@dataclass(frozen=True)
class Transaction:
    """Immutable ledger entry or recurrence template."""

    name: str
    amount: Money
    transaction_date: DateStr
    type: TransactionType = "expense"
    status: TransactionStatus = "cleared"
    id: int | None = None
    category: CategoryName | None = None
    budget_group: str | None = None
    notes: str | None = None
    is_recurring: bool = False
    recurrence_id: str | None = None
    recur_frequency: int | None = None
    recur_period: RecurPeriod | None = None
    recur_end_date: DateStr | None = None
    is_ghost: bool = False
    source: str = "manual"

    @property
    def is_skipped(self) -> bool:
        return self.status == "skipped"

    @property
    def is_confirmed(self) -> bool:
        """Cleared or pending, as opposed to expected/skipped."""
        return self.status in ("cleared", "pending")


@dataclass(frozen=True)
class BudgetCategory:
    """Immutable budget category with its base monthly plan."""

    id: int
    group_id: int
    name: CategoryName
    planned_amount: Money = Money(0)
    is_fixed: bool = False
    sort_order: int = 0


@dataclass(frozen=True)
class BudgetGroup:
    """Immutable budget group with its categories in sort order."""

    id: int
    name: str
    type: GroupType
    sort_order: int = 0
    categories: tuple[BudgetCategory, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class BudgetOverride:
    """Per-month replacement of a category's planned amount."""

    category_id: int
    month: Month
    amount: Money
