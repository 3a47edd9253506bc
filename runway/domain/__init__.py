"""Domain models and types for runway.

This package contains the functional core:
- Pure functions with no side effects
- No I/O operations
- Easy to test
- Business logic separated from infrastructure
"""

from runway.domain.models import (
    BudgetCategory,
    BudgetGroup,
    BudgetOverride,
    CategoryName,
    DateStr,
    Money,
    Month,
    Transaction,
)

__all__ = [
    "Money",
    "Month",
    "DateStr",
    "CategoryName",
    "Transaction",
    "BudgetCategory",
    "BudgetGroup",
    "BudgetOverride",
]
