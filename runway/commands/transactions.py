"""Transaction management commands (add, edit, delete, set-balance, import)."""

import re
import sqlite3
import sys
from dataclasses import replace
from pathlib import Path

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from runway.commands.budget import parse_money, resolve_month
from runway.config import load_settings
from runway.dates import format_date, month_end, month_range, normalize_date, parse_month, today_in_timezone
from runway.domain.models import (
    RECUR_PERIODS,
    TRANSACTION_STATUSES,
    TRANSACTION_TYPES,
    CategoryName,
    DateStr,
    Transaction,
)
from runway.domain.recurrence import EDIT_SCOPES, plan_delete, plan_edit_scope
from runway.domain.transactions import (
    CsvMapping,
    analyze_csv_columns,
    calculate_balance_adjustment,
    format_money_display,
    make_balance_adjustment,
    parse_csv_transaction,
)
from runway.store.queries import (
    apply_edit_plan,
    get_transaction,
    insert_transactions,
    list_transactions,
    sum_transactions_through,
    upsert_transaction,
)
from runway.store.schema import get_db_path

console = Console()

YEAR_FIRST = re.compile(r"\d{4}-")


def normalize_user_date(raw_date: str, timezone: str = "UTC") -> DateStr:
    """Normalize a user-entered date string to ISO format (YYYY-MM-DD).

    ISO dates (YYYY-MM-DD) are taken as they are. Anything else goes through
    pandas.to_datetime with dayfirst, so DD/MM/YYYY and other bank-style
    formats are accepted. "today" resolves in the given timezone.

    Raises:
        ValueError: If the date cannot be parsed.
    """
    if raw_date.strip().lower() == "today":
        return today_in_timezone(timezone)
    try:
        return normalize_date(raw_date)
    except ValueError:
        # Year-first input is ISO or nothing
        if YEAR_FIRST.match(raw_date.strip()):
            raise
    try:
        return DateStr(pd.to_datetime(raw_date, dayfirst=True).strftime("%Y-%m-%d"))
    except (ValueError, pd.errors.ParserError) as e:
        raise ValueError(f"Could not parse date '{raw_date}': {e}") from e


def _check_choice(value: str | None, choices: tuple[str, ...], label: str) -> None:
    if value is not None and value not in choices:
        raise ValueError(f"{label} must be one of {', '.join(choices)}, got {value!r}")


def _describe(txn: Transaction, symbol: str) -> None:
    console.print(f"  Date: {txn.transaction_date}")
    console.print(f"  Name: {txn.name}")
    console.print(f"  Amount: {format_money_display(txn.amount, symbol)}")
    console.print(f"  Status: {txn.status}")
    if txn.category:
        console.print(f"  Category: {txn.category}")
    if txn.is_recurring:
        console.print(f"  Repeats: every {txn.recur_frequency} {txn.recur_period}")


def add_command(
    date: str,
    name: str,
    amount: str,
    txn_type: str | None = None,
    status: str = "cleared",
    category: str | None = None,
    every: int | None = None,
    period: str | None = None,
    until: str | None = None,
    notes: str | None = None,
    group: str | None = None,
) -> None:
    """Add a transaction, expanding it into a series when it repeats.

    Args:
        date: Transaction date (YYYY-MM-DD, DD/MM/YYYY, or "today").
        name: Transaction name.
        amount: Signed amount in major units (negative for money going out).
        txn_type: Transaction type. Inferred from the sign when omitted.
        status: cleared, pending, expected or skipped.
        category: Optional budget category name.
        every: Repeat every N periods.
        period: Repeat period (days, weeks, months, years).
        until: Last date of the series. Defaults to two years from today.
        notes: Optional free text.
        group: Optional budget group label.
    """
    db_path = get_db_path()

    try:
        settings = load_settings()
        today = today_in_timezone(settings["timezone"])

        amount_minor = parse_money(amount, allow_negative=True)
        if amount_minor is None:
            raise ValueError(f"Invalid amount '{amount}'")

        _check_choice(txn_type, TRANSACTION_TYPES, "Type")
        _check_choice(status, TRANSACTION_STATUSES, "Status")
        _check_choice(period, RECUR_PERIODS, "Period")

        is_recurring = every is not None or period is not None
        txn = Transaction(
            name=name,
            amount=amount_minor,
            transaction_date=normalize_user_date(date, settings["timezone"]),
            type=txn_type or ("income" if amount_minor >= 0 else "expense"),
            status=status,
            category=CategoryName(category) if category else None,
            budget_group=group,
            notes=notes,
            is_recurring=is_recurring,
            recur_frequency=(every or 1) if is_recurring else None,
            recur_period=(period or "months") if is_recurring else None,
            recur_end_date=normalize_user_date(until, settings["timezone"]) if until and is_recurring else None,
        )

        plan = plan_edit_scope(None, txn, "single", today)
        ids = apply_edit_plan(plan, db_path)

        console.print(f"[green]✓[/green] Transaction added (ID: {ids[0]}):")
        _describe(txn, settings["currency_symbol"])
        if len(ids) > 1:
            last = plan.to_insert[-1].transaction_date
            console.print(f"[dim]Scheduled {len(ids) - 1} further occurrence(s) through {last}[/dim]")

    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)


def edit_command(
    transaction_id: int,
    scope: str = "single",
    date: str | None = None,
    name: str | None = None,
    amount: str | None = None,
    status: str | None = None,
    category: str | None = None,
    every: int | None = None,
    period: str | None = None,
    until: str | None = None,
    stop_recurring: bool = False,
) -> None:
    """Edit a transaction, or it and the rest of its series.

    Args:
        transaction_id: Transaction ID (from 'runway list').
        scope: "single" for this row only, "future" to regenerate the rest of its series.
        stop_recurring: Turn the transaction back into a one-off, dropping later expected rows.
    """
    db_path = get_db_path()

    try:
        settings = load_settings()
        today = today_in_timezone(settings["timezone"])

        _check_choice(scope, EDIT_SCOPES, "Scope")
        _check_choice(status, TRANSACTION_STATUSES, "Status")
        _check_choice(period, RECUR_PERIODS, "Period")

        old = get_transaction(transaction_id, db_path)
        if old is None:
            console.print(f"[red]Transaction {transaction_id} not found[/red]", style="bold")
            sys.exit(1)

        new = old
        if date is not None:
            new = replace(new, transaction_date=normalize_user_date(date, settings["timezone"]))
        if name is not None:
            new = replace(new, name=name)
        if amount is not None:
            amount_minor = parse_money(amount, allow_negative=True)
            if amount_minor is None:
                raise ValueError(f"Invalid amount '{amount}'")
            new = replace(new, amount=amount_minor)
        if status is not None:
            new = replace(new, status=status)
        if category is not None:
            new = replace(new, category=CategoryName(category) if category else None)

        if stop_recurring:
            new = replace(new, is_recurring=False)
        elif every is not None or period is not None or until is not None:
            new = replace(
                new,
                is_recurring=True,
                recur_frequency=every or old.recur_frequency or 1,
                recur_period=period or old.recur_period or "months",
                recur_end_date=normalize_user_date(until, settings["timezone"]) if until else old.recur_end_date,
            )

        if new == old:
            console.print("[yellow]Nothing to change[/yellow]")
            return

        plan = plan_edit_scope(old, new, scope, today)
        inserted = apply_edit_plan(plan, db_path)

        console.print(f"[green]✓[/green] Updated transaction {transaction_id}:")
        _describe(new, settings["currency_symbol"])
        if inserted:
            console.print(f"[dim]Regenerated {len(inserted)} later occurrence(s)[/dim]")

    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)


def delete_command(transaction_id: int, scope: str = "single", yes: bool = False) -> None:
    """Delete a transaction, or it and every later row of its series."""
    db_path = get_db_path()

    try:
        _check_choice(scope, EDIT_SCOPES, "Scope")

        txn = get_transaction(transaction_id, db_path)
        if txn is None:
            console.print(f"[red]Transaction {transaction_id} not found[/red]", style="bold")
            sys.exit(1)

        what = "this and all future occurrences" if scope == "future" and txn.recurrence_id else "this transaction"
        if not yes and not typer.confirm(f"Delete {what} ('{txn.name}' on {txn.transaction_date})?", default=False):
            console.print("[dim]Cancelled[/dim]")
            return

        apply_edit_plan(plan_delete(txn, scope), db_path)
        console.print(f"[green]✓[/green] Deleted {what}")

    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)


def list_command(month: str | None = None, all: bool = False) -> None:
    """List transactions for a month, or all of them."""
    db_path = get_db_path()

    try:
        settings = load_settings()
        symbol = settings["currency_symbol"]

        if all:
            transactions = list_transactions(db_path=db_path)
            title = f"Transactions (showing all {len(transactions)})"
        else:
            target_month = resolve_month(month, settings["timezone"])
            _, _, label = month_range(target_month)
            transactions = list_transactions(
                format_date(parse_month(target_month)),
                format_date(month_end(target_month)),
                db_path,
            )
            title = f"Transactions - {label}"

        if not transactions:
            console.print("[yellow]No transactions found[/yellow]")
            return

        table = Table(title=title)
        table.add_column("ID", style="dim", justify="right")
        table.add_column("Date", style="cyan")
        table.add_column("Name", style="white")
        table.add_column("Amount", justify="right")
        table.add_column("Category", style="magenta")
        table.add_column("Status", justify="center")
        table.add_column("Repeats", style="dim")

        for txn in transactions:
            amount_display = format_money_display(txn.amount, symbol)
            if txn.is_skipped:
                amount_display = f"[dim strike]{amount_display}[/dim strike]"
            elif txn.amount < 0:
                amount_display = f"[red]{amount_display}[/red]"
            else:
                amount_display = f"[green]{amount_display}[/green]"

            repeats = f"{txn.recur_frequency} {txn.recur_period}" if txn.is_recurring else ""
            status_display = txn.status if txn.is_confirmed else f"[dim]{txn.status}[/dim]"

            table.add_row(
                str(txn.id),
                txn.transaction_date,
                txn.name,
                amount_display,
                txn.category or "[dim]-[/dim]",
                status_display,
                repeats,
            )

        console.print(table)

    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)


def set_balance_command(date: str, amount: str) -> None:
    """Record a balance adjustment so the balance on a date matches the bank."""
    db_path = get_db_path()

    try:
        settings = load_settings()
        symbol = settings["currency_symbol"]

        target = parse_money(amount, allow_negative=True)
        if target is None:
            raise ValueError(f"Invalid amount '{amount}'")

        adjustment_date = normalize_user_date(date, settings["timezone"])
        current = sum_transactions_through(adjustment_date, db_path)
        diff = calculate_balance_adjustment(target, current)

        if diff is None:
            console.print(
                f"[green]✓[/green] Balance on {adjustment_date} is already "
                f"{format_money_display(target, symbol, include_sign=False)}"
            )
            return

        txn_id = upsert_transaction(make_balance_adjustment(adjustment_date, diff), db_path)
        console.print(
            f"[green]✓[/green] Added adjustment of {format_money_display(diff, symbol)} on {adjustment_date} "
            f"(ID: {txn_id})"
        )
        console.print(
            f"[dim]Balance moved from {format_money_display(current, symbol, include_sign=False)} "
            f"to {format_money_display(target, symbol, include_sign=False)}[/dim]"
        )

    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)


def import_command(csv_path: str, negate: bool = False) -> None:
    """Import cleared transactions from a bank CSV export.

    Args:
        csv_path: Path to the CSV file.
        negate: Flip the sign of every amount (for exports where spending is positive).
    """
    db_path = get_db_path()
    path = Path(csv_path).expanduser()

    if not path.exists():
        console.print(f"[red]File not found: {path}[/red]", style="bold")
        sys.exit(1)

    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        suggested = analyze_csv_columns(list(df.columns))
        missing = [key for key, column in suggested.items() if not column]
        if missing:
            console.print(f"[red]Could not detect column(s): {', '.join(missing)}[/red]", style="bold")
            console.print(f"[dim]Columns found: {', '.join(df.columns)}[/dim]")
            sys.exit(1)

        mapping: CsvMapping = {
            "date_column": suggested["date"],
            "description_column": suggested["description"],
            "amount_column": suggested["amount"],
        }

        # ISO dates first, then bank-style day-first dates for whatever is left; failures stay blank
        raw_dates = df[mapping["date_column"]]
        parsed_dates = pd.to_datetime(raw_dates, format="ISO8601", errors="coerce")
        unparsed = parsed_dates.isna() & ~raw_dates.str.match(YEAR_FIRST.pattern)
        if unparsed.any():
            parsed_dates = parsed_dates.fillna(pd.to_datetime(raw_dates[unparsed], dayfirst=True, errors="coerce"))
        df[mapping["date_column"]] = parsed_dates.dt.strftime("%Y-%m-%d").fillna("")

        parsed = [parse_csv_transaction(row, mapping, negate) for row in df.to_dict("records")]
        transactions = [txn for txn in parsed if txn is not None]
        skipped = len(parsed) - len(transactions)

        if not transactions:
            console.print("[yellow]No valid transactions found in CSV[/yellow]")
            return

        insert_transactions(transactions, db_path)

        console.print(f"[green]✓[/green] Imported {len(transactions)} transaction(s) from {path.name}")
        if skipped:
            console.print(f"[yellow]Skipped {skipped} row(s) with a missing date or amount[/yellow]")

    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        console.print(f"[red]Could not read CSV: {e}[/red]", style="bold")
        sys.exit(1)
    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)
