"""Database store layer - provides persistence for the application.

This module re-exports all public database functions for easy importing.
"""

# Re-export schema functions
# Re-export all query functions
from runway.store.queries import (
    add_budget_category,
    add_budget_group,
    apply_base_amount_change,
    apply_edit_plan,
    compute_opening_balance,
    delete_budget_overrides_from,
    delete_transaction,
    delete_transactions_by_recurrence,
    get_budget_category,
    get_snapshot,
    get_transaction,
    insert_transactions,
    invalidate_snapshots_from,
    list_budget_groups,
    list_budget_overrides,
    list_transactions,
    save_snapshot,
    sum_transactions_through,
    upsert_budget_override,
    upsert_transaction,
)
from runway.store.schema import database_exists, get_db_path, init_database

__all__ = [
    # Schema
    "database_exists",
    "get_db_path",
    "init_database",
    # Queries
    "add_budget_category",
    "add_budget_group",
    "apply_base_amount_change",
    "apply_edit_plan",
    "compute_opening_balance",
    "delete_budget_overrides_from",
    "delete_transaction",
    "delete_transactions_by_recurrence",
    "get_budget_category",
    "get_snapshot",
    "get_transaction",
    "insert_transactions",
    "invalidate_snapshots_from",
    "list_budget_groups",
    "list_budget_overrides",
    "list_transactions",
    "save_snapshot",
    "sum_transactions_through",
    "upsert_budget_override",
    "upsert_transaction",
]
