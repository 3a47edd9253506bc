"""Database schema initialization and migrations."""

import os
import sqlite3
from pathlib import Path


def get_xdg_data_home() -> Path:
    """Get XDG data directory, with fallback to ~/.local/share."""
    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def get_db_path() -> Path:
    """Get the default database path (XDG compliant)."""
    return get_xdg_data_home() / "runway" / "runway.db"


def database_exists(db_path: Path | None = None) -> bool:
    """Check if the database file exists.

    Args:
        db_path: Path to check. If None, uses default location.

    Returns:
        True if database exists, False otherwise.
    """
    if db_path is None:
        db_path = get_db_path()
    return db_path.exists()


def init_database(db_path: Path | None = None) -> None:
    """Initialize the database with the required schema.

    Args:
        db_path: Path to the database file. If None, uses default location.

    Raises:
        sqlite3.Error: If database initialization fails.
    """
    if db_path is None:
        db_path = get_db_path()

    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                amount INTEGER NOT NULL,
                transaction_date TEXT NOT NULL,
                type TEXT NOT NULL DEFAULT 'expense',
                status TEXT NOT NULL DEFAULT 'cleared',
                category TEXT,
                budget_group TEXT,
                notes TEXT,
                is_recurring INTEGER NOT NULL DEFAULT 0,
                recurrence_id TEXT,
                recur_frequency INTEGER,
                recur_period TEXT,
                recur_end_date TEXT,
                source TEXT NOT NULL DEFAULT 'manual',
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS budget_groups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                type TEXT NOT NULL,
                sort_order INTEGER NOT NULL DEFAULT 0
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS budget_categories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES budget_groups(id) ON DELETE CASCADE,
                name TEXT NOT NULL UNIQUE,
                planned_amount INTEGER NOT NULL DEFAULT 0,
                is_fixed INTEGER NOT NULL DEFAULT 0,
                sort_order INTEGER NOT NULL DEFAULT 0
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS budget_months (
                category_id INTEGER NOT NULL REFERENCES budget_categories(id) ON DELETE CASCADE,
                month TEXT NOT NULL,
                amount INTEGER NOT NULL,
                PRIMARY KEY (category_id, month)
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS monthly_snapshots (
                month TEXT PRIMARY KEY,
                balance INTEGER NOT NULL,
                computed_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """
        )

        # Migration: Add 'source' column for databases created before CSV import
        cursor.execute("PRAGMA table_info(transactions)")
        columns = [row[1] for row in cursor.fetchall()]
        if "source" not in columns:
            cursor.execute("ALTER TABLE transactions ADD COLUMN source TEXT NOT NULL DEFAULT 'manual'")

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_txn_date ON transactions(transaction_date)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_txn_category_date ON transactions(category, transaction_date)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_txn_recurrence ON transactions(recurrence_id, transaction_date)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_budget_months_month ON budget_months(month)")

        conn.commit()

    except sqlite3.Error:
        conn.rollback()
        raise
    finally:
        conn.close()
