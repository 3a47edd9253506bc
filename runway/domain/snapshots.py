"""Pure functions for the monthly opening-balance snapshot policy.

A snapshot for month M memoizes the balance immediately before M starts. A
change to a transaction dated in month X can only affect balances on or after
X, so it invalidates the snapshots for X and every later month while earlier
snapshots stay valid.
"""

from collections.abc import Iterable

from runway.dates import month_key, parse_date, parse_month
from runway.domain.models import Money, Month, Transaction
from runway.domain.transactions import counted


def opening_balance_from_ledger(ledger: Iterable[Transaction], month: Month) -> Money:
    """Recompute a month's opening balance from the full ledger.

    Args:
        ledger: Every stored transaction dated before the month (later ones are ignored).
        month: Month in YYYY-MM format.

    Returns:
        Sum of counted transactions dated strictly before the first day of month.
    """
    first_day = parse_month(month)
    return Money(sum(t.amount for t in counted(ledger) if parse_date(t.transaction_date) < first_day))


def invalidation_month(changed_dates: Iterable[str]) -> Month | None:
    """Earliest month whose snapshot a change to these dates invalidates.

    Args:
        changed_dates: Dates (YYYY-MM-DD) of every row added, edited or removed,
            including the old date of a row that moved.

    Returns:
        Month to invalidate from, or None if no dates were given.
    """
    dates = [parse_date(d) for d in changed_dates]
    if not dates:
        return None
    return month_key(min(dates))


def is_snapshot_stale(snapshot_month: Month, changed_date: str) -> bool:
    """Whether a change dated changed_date invalidates the snapshot for snapshot_month."""
    return parse_month(snapshot_month) >= parse_month(month_key(parse_date(changed_date)))
