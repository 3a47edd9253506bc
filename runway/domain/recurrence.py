"""Pure functions for recurring transactions.

This module contains the functional core for recurrence operations:
- Expanding a recurrence template into dated occurrences
- Planning the writes needed to apply an edit or delete to a series

Nothing here touches the database; the store executes the returned plans.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import date
from typing import Literal

from runway.dates import add_interval, format_date, month_key, parse_date
from runway.domain.models import RECUR_PERIODS, DateStr, Month, Transaction
from runway.domain.transactions import strip_recurrence

# Hard cap on occurrences generated after the anchor
MAX_OCCURRENCES = 200

# Series without an end date run this many years past today
DEFAULT_HORIZON_YEARS = 2

EditScope = Literal["single", "future"]
EDIT_SCOPES: tuple[str, ...] = ("single", "future")


@dataclass(frozen=True)
class DeleteById:
    """Delete one stored transaction."""

    transaction_id: int


@dataclass(frozen=True)
class DeleteSeries:
    """Delete the rows of a recurrence group dated after a date."""

    recurrence_id: str
    after: DateStr
    inclusive: bool = False
    only_expected: bool = False


Deletion = DeleteById | DeleteSeries


@dataclass(frozen=True)
class EditPlan:
    """Writes needed to apply a change to the ledger.

    The store executes deletions, then updates, then inserts, and invalidates
    snapshots from invalidate_from onwards, all in one database transaction.
    """

    to_delete: tuple[Deletion, ...] = ()
    to_insert: tuple[Transaction, ...] = ()
    to_update: tuple[Transaction, ...] = ()
    invalidate_from: Month | None = None


def new_recurrence_id() -> str:
    return uuid.uuid4().hex


def validate_recurrence(template: Transaction) -> None:
    """Check that a recurrence rule is well formed.

    Raises:
        ValueError: If the frequency is not a positive integer, the period is
            unknown, or the end date is malformed.
    """
    frequency = template.recur_frequency
    if isinstance(frequency, bool) or not isinstance(frequency, int) or frequency < 1:
        raise ValueError(f"Recurrence frequency must be a positive integer, got {frequency!r}")

    if template.recur_period not in RECUR_PERIODS:
        raise ValueError(
            f"Recurrence period must be one of {', '.join(RECUR_PERIODS)}, got {template.recur_period!r}"
        )

    if template.recur_end_date is not None:
        parse_date(template.recur_end_date)


def effective_end_date(template: Transaction, today: str) -> date:
    """Last date a series may reach: its end date, or today plus the default horizon."""
    if template.recur_end_date:
        return parse_date(template.recur_end_date)
    return add_interval(parse_date(today), DEFAULT_HORIZON_YEARS, "years")


def expand_recurrence(
    template: Transaction,
    today: str,
    existing_recurrence_id: str | None = None,
) -> list[Transaction]:
    """Expand a recurring template into its ordered occurrences.

    The first element is the anchor: the template itself with its status kept
    and its row id dropped. Each later occurrence is the previous date advanced
    by the rule (month/year steps clamp to the end of shorter months, and the
    clamped day carries forward), has status "expected", and inherits every
    other field from the anchor. Expansion stops once the next date falls after
    the effective end date, and never yields more than MAX_OCCURRENCES after
    the anchor.

    Args:
        template: Transaction carrying the recurrence rule.
        today: Today's date (YYYY-MM-DD), used for the default end date.
        existing_recurrence_id: Recurrence id to reuse when editing a series.

    Returns:
        Occurrences ordered earliest first. A non-recurring template is
        returned unchanged as the only element.

    Raises:
        ValueError: If the recurrence rule is invalid.
    """
    if not template.is_recurring:
        return [template]

    validate_recurrence(template)
    assert template.recur_frequency is not None and template.recur_period is not None

    recurrence_id = existing_recurrence_id or new_recurrence_id()
    anchor = replace(template, id=None, recurrence_id=recurrence_id)
    end = effective_end_date(template, today)

    occurrences = [anchor]
    current = parse_date(template.transaction_date)
    for _ in range(MAX_OCCURRENCES):
        current = add_interval(current, template.recur_frequency, template.recur_period)
        if current > end:
            break
        occurrences.append(replace(anchor, transaction_date=format_date(current), status="expected"))

    return occurrences


def _check_scope(scope: str) -> None:
    if scope not in EDIT_SCOPES:
        raise ValueError(f"Scope must be one of {', '.join(EDIT_SCOPES)}, got {scope!r}")


def plan_edit_scope(
    old: Transaction | None,
    new: Transaction,
    scope: EditScope,
    today: str,
) -> EditPlan:
    """Plan the writes for creating or editing a transaction.

    Args:
        old: Stored transaction being edited, or None when creating.
        new: Transaction as the user wants it to be.
        scope: "single" to touch this row only, "future" to also rewrite the
            rest of its recurrence group.
        today: Today's date (YYYY-MM-DD) for default series end dates.

    Returns:
        EditPlan for the store to execute.

    Raises:
        ValueError: If the scope is unknown, a ghost is involved, the edited
            row has no id, or the recurrence rule is invalid.
    """
    _check_scope(scope)
    if new.is_ghost or (old is not None and old.is_ghost):
        raise ValueError("Ghost transactions are never persisted")

    new_date = parse_date(new.transaction_date)

    if old is None:
        rows = expand_recurrence(new, today) if new.is_recurring else [replace(new, id=None)]
        return EditPlan(to_insert=tuple(rows), invalidate_from=month_key(new_date))

    if old.id is None:
        raise ValueError("Cannot edit a transaction that has not been stored")

    base = replace(new, id=old.id)
    invalidate_from = month_key(min(parse_date(old.transaction_date), new_date))

    if not old.is_recurring and new.is_recurring:
        # Becoming recurring starts a brand new group
        series = expand_recurrence(base, today, new_recurrence_id())
        anchor = replace(base, recurrence_id=series[0].recurrence_id)
        return EditPlan(to_update=(anchor,), to_insert=tuple(series[1:]), invalidate_from=invalidate_from)

    if old.is_recurring and new.is_recurring:
        recurrence_id = old.recurrence_id or new_recurrence_id()
        anchor = replace(base, recurrence_id=recurrence_id)
        if scope == "single":
            return EditPlan(to_update=(anchor,), invalidate_from=invalidate_from)

        series = expand_recurrence(anchor, today, recurrence_id)
        deletions: tuple[Deletion, ...] = ()
        if old.recurrence_id:
            deletions = (DeleteSeries(old.recurrence_id, after=old.transaction_date),)
        return EditPlan(
            to_delete=deletions,
            to_update=(anchor,),
            to_insert=tuple(series[1:]),
            invalidate_from=invalidate_from,
        )

    if old.is_recurring and not new.is_recurring:
        deletions = ()
        if old.recurrence_id:
            deletions = (DeleteSeries(old.recurrence_id, after=old.transaction_date, only_expected=True),)
        return EditPlan(
            to_delete=deletions,
            to_update=(strip_recurrence(base),),
            invalidate_from=invalidate_from,
        )

    return EditPlan(to_update=(base,), invalidate_from=invalidate_from)


def plan_delete(txn: Transaction, scope: EditScope) -> EditPlan:
    """Plan the writes for deleting a transaction.

    "single" removes just this row. "future" removes every row of its
    recurrence group dated on or after it.

    Raises:
        ValueError: If the scope is unknown or the row has no id.
    """
    _check_scope(scope)
    if txn.id is None:
        raise ValueError("Cannot delete a transaction that has not been stored")

    invalidate_from = month_key(parse_date(txn.transaction_date))
    if scope == "future" and txn.recurrence_id:
        deletion: Deletion = DeleteSeries(txn.recurrence_id, after=txn.transaction_date, inclusive=True)
    else:
        deletion = DeleteById(txn.id)
    return EditPlan(to_delete=(deletion,), invalidate_from=invalidate_from)
