"""Database query functions.

Every function that changes the ledger also deletes the monthly snapshots it
makes stale, inside the same SQLite transaction, so a reader can never see the
new ledger alongside an old snapshot.
"""

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from runway.dates import format_date, month_key, normalize_date, parse_date, parse_month
from runway.domain.budget import BaseAmountChange
from runway.domain.models import (
    GROUP_TYPES,
    BudgetCategory,
    BudgetGroup,
    BudgetOverride,
    CategoryName,
    Money,
    Month,
    Transaction,
)
from runway.domain.recurrence import DeleteById, DeleteSeries, EditPlan
from runway.domain.snapshots import invalidation_month
from runway.store.schema import get_db_path

logger = logging.getLogger(__name__)

_TRANSACTION_COLUMNS = (
    "name",
    "amount",
    "transaction_date",
    "type",
    "status",
    "category",
    "budget_group",
    "notes",
    "is_recurring",
    "recurrence_id",
    "recur_frequency",
    "recur_period",
    "recur_end_date",
    "source",
)


@contextmanager
def _connect(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Open a database connection with row factory, closing it afterwards.

    Args:
        db_path: Path to the database file. If None, uses default location.

    Yields:
        Database connection with row_factory configured.
    """
    if db_path is None:
        db_path = get_db_path()
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def _write(db_path: Path | None = None) -> Iterator[sqlite3.Cursor]:
    """Run a block of writes as one immediate transaction.

    Yields:
        Cursor inside the open transaction. Commits on success, rolls back on
        any error and re-raises it.
    """
    with _connect(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("BEGIN IMMEDIATE")
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        name=row["name"],
        amount=Money(row["amount"]),
        transaction_date=row["transaction_date"],
        type=row["type"],
        status=row["status"],
        category=CategoryName(row["category"]) if row["category"] is not None else None,
        budget_group=row["budget_group"],
        notes=row["notes"],
        is_recurring=bool(row["is_recurring"]),
        recurrence_id=row["recurrence_id"],
        recur_frequency=row["recur_frequency"],
        recur_period=row["recur_period"],
        recur_end_date=row["recur_end_date"],
        source=row["source"],
    )


def _transaction_values(txn: Transaction) -> list[Any]:
    """Column values for a transaction, with dates normalized.

    Raises:
        ValueError: If the transaction is a ghost or a date is malformed.
    """
    if txn.is_ghost:
        raise ValueError(f"Ghost transaction '{txn.name}' cannot be persisted")

    return [
        txn.name,
        int(txn.amount),
        normalize_date(txn.transaction_date),
        txn.type,
        txn.status,
        txn.category,
        txn.budget_group,
        txn.notes,
        int(txn.is_recurring),
        txn.recurrence_id,
        txn.recur_frequency,
        txn.recur_period,
        normalize_date(txn.recur_end_date) if txn.recur_end_date else None,
        txn.source,
    ]


def _insert_transaction(cursor: sqlite3.Cursor, txn: Transaction) -> int:
    placeholders = ", ".join("?" for _ in _TRANSACTION_COLUMNS)
    cursor.execute(
        f"INSERT INTO transactions ({', '.join(_TRANSACTION_COLUMNS)}) VALUES ({placeholders})",
        _transaction_values(txn),
    )
    assert cursor.lastrowid is not None
    return cursor.lastrowid


def _update_transaction(cursor: sqlite3.Cursor, txn: Transaction) -> str:
    """Update a stored transaction, returning its previous date.

    Raises:
        ValueError: If the transaction has no id or does not exist.
    """
    if txn.id is None:
        raise ValueError("Cannot update a transaction without an id")

    cursor.execute("SELECT transaction_date FROM transactions WHERE id = ?", (txn.id,))
    row = cursor.fetchone()
    if row is None:
        raise ValueError(f"Transaction {txn.id} not found")

    assignments = ", ".join(f"{column} = ?" for column in _TRANSACTION_COLUMNS)
    cursor.execute(
        f"UPDATE transactions SET {assignments} WHERE id = ?",
        [*_transaction_values(txn), txn.id],
    )
    return str(row[0])


def _invalidate_from(cursor: sqlite3.Cursor, month: Month) -> int:
    cursor.execute("DELETE FROM monthly_snapshots WHERE month >= ?", (month,))
    if cursor.rowcount:
        logger.debug("Invalidated %d snapshot(s) from %s", cursor.rowcount, month)
    return cursor.rowcount


def list_transactions(
    since: str | None = None,
    until: str | None = None,
    db_path: Path | None = None,
) -> list[Transaction]:
    """Get transactions in a date range.

    Args:
        since: Optional first date (YYYY-MM-DD), inclusive.
        until: Optional last date (YYYY-MM-DD), inclusive.
        db_path: Path to the database file. If None, uses default location.

    Returns:
        Transactions ordered by date ascending, then id.

    Raises:
        sqlite3.Error: If database operation fails.
    """
    with _connect(db_path) as conn:
        cursor = conn.cursor()
        query = "SELECT * FROM transactions WHERE 1 = 1"
        params: list[Any] = []

        if since:
            query += " AND transaction_date >= ?"
            params.append(normalize_date(since))
        if until:
            query += " AND transaction_date <= ?"
            params.append(normalize_date(until))

        query += " ORDER BY transaction_date ASC, id ASC"

        cursor.execute(query, params)
        return [_row_to_transaction(row) for row in cursor.fetchall()]


def get_transaction(txn_id: int, db_path: Path | None = None) -> Transaction | None:
    """Get a single transaction by id, or None if it does not exist."""
    with _connect(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM transactions WHERE id = ?", (txn_id,))
        row = cursor.fetchone()
        return _row_to_transaction(row) if row else None


def sum_transactions_through(until: str, db_path: Path | None = None) -> Money:
    """Sum all non-skipped transactions dated on or before a date.

    Raises:
        sqlite3.Error: If database operation fails.
    """
    with _connect(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT COALESCE(SUM(amount), 0) FROM transactions WHERE transaction_date <= ? AND status != 'skipped'",
            (normalize_date(until),),
        )
        return Money(cursor.fetchone()[0])


def upsert_transaction(txn: Transaction, db_path: Path | None = None) -> int:
    """Insert a new transaction or update an existing one.

    Snapshots are invalidated from the earliest of the old and new dates.

    Args:
        txn: Transaction to save. Inserted when id is None.
        db_path: Path to the database file. If None, uses default location.

    Returns:
        Row id of the saved transaction.

    Raises:
        ValueError: If the transaction is a ghost, malformed, or missing.
        sqlite3.Error: If database operation fails.
    """
    with _write(db_path) as cursor:
        if txn.id is None:
            txn_id = _insert_transaction(cursor, txn)
            changed = [txn.transaction_date]
        else:
            old_date = _update_transaction(cursor, txn)
            txn_id = txn.id
            changed = [old_date, txn.transaction_date]

        month = invalidation_month(changed)
        assert month is not None
        _invalidate_from(cursor, month)
        logger.debug("Saved transaction %d (%s)", txn_id, txn.transaction_date)
        return txn_id


def insert_transactions(txns: Iterable[Transaction], db_path: Path | None = None) -> list[int]:
    """Insert a batch of transactions, all or nothing.

    Used for recurrence series and CSV imports.

    Returns:
        Row ids in input order.

    Raises:
        ValueError: If any transaction is a ghost or malformed (nothing is written).
        sqlite3.Error: If database operation fails (nothing is written).
    """
    rows = list(txns)
    if not rows:
        return []

    with _write(db_path) as cursor:
        ids = [_insert_transaction(cursor, txn) for txn in rows]
        month = invalidation_month(t.transaction_date for t in rows)
        assert month is not None
        _invalidate_from(cursor, month)
        logger.debug("Inserted %d transaction(s) from %s", len(ids), month)
        return ids


def delete_transaction(txn_id: int, db_path: Path | None = None) -> bool:
    """Delete a single transaction.

    Returns:
        True if a row was deleted, False if it did not exist.

    Raises:
        sqlite3.Error: If database operation fails.
    """
    with _write(db_path) as cursor:
        cursor.execute("SELECT transaction_date FROM transactions WHERE id = ?", (txn_id,))
        row = cursor.fetchone()
        if row is None:
            return False

        cursor.execute("DELETE FROM transactions WHERE id = ?", (txn_id,))
        _invalidate_from(cursor, month_key(parse_date(row[0])))
        return True


def _delete_series(cursor: sqlite3.Cursor, deletion: DeleteSeries) -> int:
    operator = ">=" if deletion.inclusive else ">"
    query = f"DELETE FROM transactions WHERE recurrence_id = ? AND transaction_date {operator} ?"
    params: list[Any] = [deletion.recurrence_id, normalize_date(deletion.after)]
    if deletion.only_expected:
        query += " AND status = 'expected'"
    cursor.execute(query, params)
    return cursor.rowcount


def delete_transactions_by_recurrence(recurrence_id: str, from_date: str, db_path: Path | None = None) -> int:
    """Delete every row of a recurrence group dated on or after from_date.

    Returns:
        Number of rows deleted.

    Raises:
        sqlite3.Error: If database operation fails.
    """
    with _write(db_path) as cursor:
        count = _delete_series(cursor, DeleteSeries(recurrence_id, after=from_date, inclusive=True))
        _invalidate_from(cursor, month_key(parse_date(from_date)))
        return count


def apply_edit_plan(plan: EditPlan, db_path: Path | None = None) -> list[int]:
    """Execute an EditPlan in one transaction.

    Deletions run first, then updates, then inserts; snapshots are invalidated
    from plan.invalidate_from and from the date of every touched row.

    Returns:
        Row ids of inserted transactions.

    Raises:
        ValueError: If the plan touches a ghost or missing transaction (nothing is written).
        sqlite3.Error: If database operation fails (nothing is written).
    """
    with _write(db_path) as cursor:
        changed: list[str] = []

        for deletion in plan.to_delete:
            if isinstance(deletion, DeleteById):
                cursor.execute("SELECT transaction_date FROM transactions WHERE id = ?", (deletion.transaction_id,))
                row = cursor.fetchone()
                if row is not None:
                    changed.append(row[0])
                cursor.execute("DELETE FROM transactions WHERE id = ?", (deletion.transaction_id,))
            else:
                _delete_series(cursor, deletion)
                changed.append(deletion.after)

        for txn in plan.to_update:
            changed.append(_update_transaction(cursor, txn))
            changed.append(txn.transaction_date)

        inserted = [_insert_transaction(cursor, txn) for txn in plan.to_insert]
        changed.extend(t.transaction_date for t in plan.to_insert)

        if plan.invalidate_from:
            changed.append(format_date(parse_month(plan.invalidate_from)))

        month = invalidation_month(changed)
        if month is not None:
            _invalidate_from(cursor, month)

        logger.debug(
            "Applied edit plan: %d deletion(s), %d update(s), %d insert(s)",
            len(plan.to_delete),
            len(plan.to_update),
            len(inserted),
        )
        return inserted


def get_snapshot(month: Month, db_path: Path | None = None) -> Money | None:
    """Get the cached opening balance for a month, or None if absent."""
    with _connect(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT balance FROM monthly_snapshots WHERE month = ?", (month,))
        row = cursor.fetchone()
        return Money(row[0]) if row else None


def save_snapshot(month: Month, balance: Money, db_path: Path | None = None) -> None:
    """Cache the opening balance for a month.

    Raises:
        sqlite3.Error: If database operation fails.
    """
    with _write(db_path) as cursor:
        cursor.execute(
            "INSERT OR REPLACE INTO monthly_snapshots (month, balance, computed_at) VALUES (?, ?, datetime('now'))",
            (month, int(balance)),
        )


def invalidate_snapshots_from(month: Month, db_path: Path | None = None) -> int:
    """Delete the snapshots for month and every later month.

    Returns:
        Number of snapshots deleted.
    """
    parse_month(month)
    with _write(db_path) as cursor:
        return _invalidate_from(cursor, month)


def compute_opening_balance(month: Month, db_path: Path | None = None) -> Money:
    """Get the balance immediately before a month starts.

    Served from the snapshot when one exists; otherwise summed from every
    non-skipped transaction dated before the month and memoized. The sum and
    the memo are written in one transaction, so a concurrent ledger write
    cannot slip in between them.

    Raises:
        ValueError: If the month is malformed.
        sqlite3.Error: If database operation fails.
    """
    month = month_key(parse_month(month))

    with _write(db_path) as cursor:
        cursor.execute("SELECT balance FROM monthly_snapshots WHERE month = ?", (month,))
        row = cursor.fetchone()
        if row is not None:
            logger.debug("Snapshot hit for %s", month)
            return Money(row[0])

        cursor.execute(
            "SELECT COALESCE(SUM(amount), 0) FROM transactions WHERE transaction_date < ? AND status != 'skipped'",
            (format_date(parse_month(month)),),
        )
        balance = Money(cursor.fetchone()[0])
        cursor.execute(
            "INSERT OR REPLACE INTO monthly_snapshots (month, balance, computed_at) VALUES (?, ?, datetime('now'))",
            (month, int(balance)),
        )
        logger.debug("Snapshot miss for %s, recomputed %d", month, balance)
        return balance


def add_budget_group(name: str, group_type: str, sort_order: int | None = None, db_path: Path | None = None) -> int:
    """Add a budget group.

    Returns:
        Row id of the new group.

    Raises:
        ValueError: If the group type is unknown.
        sqlite3.Error: If database operation fails (e.g. duplicate name).
    """
    if group_type not in GROUP_TYPES:
        raise ValueError(f"Group type must be one of {', '.join(GROUP_TYPES)}, got {group_type!r}")

    with _write(db_path) as cursor:
        if sort_order is None:
            cursor.execute("SELECT COALESCE(MAX(sort_order), -1) + 1 FROM budget_groups")
            sort_order = cursor.fetchone()[0]
        cursor.execute(
            "INSERT INTO budget_groups (name, type, sort_order) VALUES (?, ?, ?)",
            (name, group_type, sort_order),
        )
        assert cursor.lastrowid is not None
        return cursor.lastrowid


def add_budget_category(
    group_id: int,
    name: CategoryName,
    planned_amount: Money = Money(0),
    is_fixed: bool = False,
    sort_order: int | None = None,
    db_path: Path | None = None,
) -> int:
    """Add a category to a budget group.

    Returns:
        Row id of the new category.

    Raises:
        ValueError: If the planned amount is negative or the group does not exist.
        sqlite3.Error: If database operation fails (e.g. duplicate name).
    """
    if planned_amount < 0:
        raise ValueError("Amount must be positive")

    with _write(db_path) as cursor:
        cursor.execute("SELECT id FROM budget_groups WHERE id = ?", (group_id,))
        if cursor.fetchone() is None:
            raise ValueError(f"Budget group {group_id} not found")

        if sort_order is None:
            cursor.execute(
                "SELECT COALESCE(MAX(sort_order), -1) + 1 FROM budget_categories WHERE group_id = ?",
                (group_id,),
            )
            sort_order = cursor.fetchone()[0]
        cursor.execute(
            "INSERT INTO budget_categories (group_id, name, planned_amount, is_fixed, sort_order) "
            "VALUES (?, ?, ?, ?, ?)",
            (group_id, name, int(planned_amount), int(is_fixed), sort_order),
        )
        assert cursor.lastrowid is not None
        return cursor.lastrowid


def list_budget_groups(db_path: Path | None = None) -> list[BudgetGroup]:
    """Get all budget groups with nested categories, both in sort order.

    Raises:
        sqlite3.Error: If database operation fails.
    """
    with _connect(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM budget_categories ORDER BY sort_order, id")
        by_group: dict[int, list[BudgetCategory]] = {}
        for row in cursor.fetchall():
            by_group.setdefault(row["group_id"], []).append(
                BudgetCategory(
                    id=row["id"],
                    group_id=row["group_id"],
                    name=CategoryName(row["name"]),
                    planned_amount=Money(row["planned_amount"]),
                    is_fixed=bool(row["is_fixed"]),
                    sort_order=row["sort_order"],
                )
            )

        cursor.execute("SELECT * FROM budget_groups ORDER BY sort_order, id")
        return [
            BudgetGroup(
                id=row["id"],
                name=row["name"],
                type=row["type"],
                sort_order=row["sort_order"],
                categories=tuple(by_group.get(row["id"], [])),
            )
            for row in cursor.fetchall()
        ]


def get_budget_category(name: CategoryName, db_path: Path | None = None) -> tuple[BudgetCategory, str] | None:
    """Find a category by name.

    Returns:
        Tuple of (category, group_type), or None if no such category.
    """
    for group in list_budget_groups(db_path):
        for category in group.categories:
            if category.name == name:
                return category, group.type
    return None


def list_budget_overrides(
    since_month: Month | None = None,
    until_month: Month | None = None,
    db_path: Path | None = None,
) -> list[BudgetOverride]:
    """Get monthly overrides, optionally limited to a month range (inclusive).

    Raises:
        sqlite3.Error: If database operation fails.
    """
    with _connect(db_path) as conn:
        cursor = conn.cursor()
        query = "SELECT category_id, month, amount FROM budget_months WHERE 1 = 1"
        params: list[Any] = []

        if since_month:
            query += " AND month >= ?"
            params.append(month_key(parse_month(since_month)))
        if until_month:
            query += " AND month <= ?"
            params.append(month_key(parse_month(until_month)))

        query += " ORDER BY month, category_id"
        cursor.execute(query, params)
        return [
            BudgetOverride(category_id=row["category_id"], month=Month(row["month"]), amount=Money(row["amount"]))
            for row in cursor.fetchall()
        ]


def upsert_budget_override(category_id: int, month: Month, amount: Money, db_path: Path | None = None) -> None:
    """Set the planned amount for a category in one month.

    Raises:
        ValueError: If the category does not exist or the month is malformed.
        sqlite3.Error: If database operation fails.
    """
    month = month_key(parse_month(month))

    with _write(db_path) as cursor:
        cursor.execute("SELECT id FROM budget_categories WHERE id = ?", (category_id,))
        if cursor.fetchone() is None:
            raise ValueError(f"Override for {month} references unknown category {category_id}")
        cursor.execute(
            "INSERT OR REPLACE INTO budget_months (category_id, month, amount) VALUES (?, ?, ?)",
            (category_id, month, int(amount)),
        )


def delete_budget_overrides_from(category_id: int, month: Month, db_path: Path | None = None) -> int:
    """Delete a category's overrides for month and every later month.

    Returns:
        Number of overrides deleted.
    """
    month = month_key(parse_month(month))
    with _write(db_path) as cursor:
        cursor.execute("DELETE FROM budget_months WHERE category_id = ? AND month >= ?", (category_id, month))
        return cursor.rowcount


def apply_base_amount_change(change: BaseAmountChange, db_path: Path | None = None) -> None:
    """Execute a BaseAmountChange in one transaction.

    Backfill overrides never replace an override that already exists.

    Raises:
        ValueError: If the category does not exist.
        sqlite3.Error: If database operation fails (nothing is written).
    """
    with _write(db_path) as cursor:
        cursor.execute("SELECT id FROM budget_categories WHERE id = ?", (change.category_id,))
        if cursor.fetchone() is None:
            raise ValueError(f"Budget category {change.category_id} not found")

        cursor.executemany(
            "INSERT OR IGNORE INTO budget_months (category_id, month, amount) VALUES (?, ?, ?)",
            [(o.category_id, o.month, int(o.amount)) for o in change.backfill],
        )
        cursor.execute(
            "UPDATE budget_categories SET planned_amount = ? WHERE id = ?",
            (int(change.new_base), change.category_id),
        )
        cursor.execute(
            "DELETE FROM budget_months WHERE category_id = ? AND month >= ?",
            (change.category_id, change.clear_from),
        )
