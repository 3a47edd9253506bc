"""CLI entry point for runway."""

import logging

import typer
from rich.logging import RichHandler

from runway.commands.admin import config_command, init_command
from runway.commands.budget import add_category_command, add_group_command, set_amount_command, status_command
from runway.commands.forecast import balance_command, forecast_command
from runway.commands.transactions import (
    add_command,
    delete_command,
    edit_command,
    import_command,
    list_command,
    set_balance_command,
)

app = typer.Typer(
    name="runway",
    help="Runway - see how far your money goes, day by day",
    add_completion=False,
)

budget_app = typer.Typer(help="Manage budget groups, categories and planned amounts.")
app.add_typer(budget_app, name="budget")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Runway - see how far your money goes, day by day."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


@app.command(name="init")
def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing database and config"),
    migrate: bool = typer.Option(False, "--migrate", help="Update the database schema only"),
) -> None:
    """Initialize runway database and configuration."""
    init_command(force, migrate)


@app.command(name="config")
def config(
    key: str = typer.Argument(None, help="Setting to show or change"),
    value: str = typer.Argument(None, help="New value"),
) -> None:
    """Show your settings, or change one."""
    config_command(key, value)


@app.command(context_settings={"ignore_unknown_options": True})
def add(
    date: str,
    name: str,
    amount: str = typer.Argument(..., help="Amount (negative for money going out)"),
    txn_type: str = typer.Option(None, "--type", "-t", help="income, expense, goal or transfer"),
    status: str = typer.Option("cleared", "--status", "-s", help="cleared, pending, expected or skipped"),
    category: str = typer.Option(None, "--category", "-c", help="Budget category"),
    group: str = typer.Option(None, "--group", "-g", help="Budget group label"),
    every: int = typer.Option(None, "--every", help="Repeat every N periods"),
    period: str = typer.Option(None, "--period", help="Repeat period: days, weeks, months or years"),
    until: str = typer.Option(None, "--until", help="Last date of the series (default: two years out)"),
    notes: str = typer.Option(None, "--notes", help="Free text notes"),
) -> None:
    """Add a transaction, or a recurring series."""
    add_command(date, name, amount, txn_type, status, category, every, period, until, notes, group)


@app.command()
def edit(
    transaction_id: int,
    scope: str = typer.Option("single", "--scope", help="'single' or 'future' (this and later occurrences)"),
    date: str = typer.Option(None, "--date", help="New date"),
    name: str = typer.Option(None, "--name", help="New name"),
    amount: str = typer.Option(None, "--amount", help="New amount"),
    status: str = typer.Option(None, "--status", "-s", help="cleared, pending, expected or skipped"),
    category: str = typer.Option(None, "--category", "-c", help="New category (empty to clear)"),
    every: int = typer.Option(None, "--every", help="Repeat every N periods"),
    period: str = typer.Option(None, "--period", help="Repeat period: days, weeks, months or years"),
    until: str = typer.Option(None, "--until", help="Last date of the series"),
    stop_recurring: bool = typer.Option(False, "--stop-recurring", help="Make this a one-off transaction"),
) -> None:
    """Edit a transaction, or it and the rest of its series."""
    edit_command(transaction_id, scope, date, name, amount, status, category, every, period, until, stop_recurring)


@app.command()
def delete(
    transaction_id: int,
    scope: str = typer.Option("single", "--scope", help="'single' or 'future' (this and later occurrences)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Don't ask for confirmation"),
) -> None:
    """Delete a transaction, or it and the rest of its series."""
    delete_command(transaction_id, scope, yes)


@app.command(name="list")
def list_transactions(
    month: str = typer.Option(None, "--month", help="Specific month (YYYY-MM)"),
    all: bool = typer.Option(False, "--all", "-a", help="Show all your transactions"),
) -> None:
    """List your transactions."""
    list_command(month, all)


@app.command(name="import")
def import_csv(
    csv_path: str,
    negate: bool = typer.Option(False, "--negate", help="Flip the sign of every amount"),
) -> None:
    """Import cleared transactions from a bank CSV export."""
    import_command(csv_path, negate)


@app.command(name="set-balance", context_settings={"ignore_unknown_options": True})
def set_balance(
    date: str,
    amount: str = typer.Argument(..., help="What your bank says the balance is"),
) -> None:
    """Correct your balance on a date with an adjustment transaction."""
    set_balance_command(date, amount)


@app.command()
def balance(
    month: str = typer.Option(None, "--month", help="Month for the opening balance (YYYY-MM)"),
) -> None:
    """Show your current balance and a month's opening balance."""
    balance_command(month)


@app.command()
def forecast(
    month: str = typer.Option(None, "--month", help="First month (YYYY-MM)"),
    months: int = typer.Option(None, "--months", "-n", help="Number of months (overrides config)"),
    no_projected: bool = typer.Option(False, "--no-projected", help="Hide the budget projection"),
    what_if: list[str] = typer.Option(None, "--what-if", help="Hypothetical DATE:AMOUNT[:NAME], repeatable"),
    every_day: bool = typer.Option(False, "--every-day", help="Show every day, not just days with activity"),
) -> None:
    """Show your day-by-day balance with the budget forecast."""
    forecast_command(month, months, no_projected, what_if, every_day)


@budget_app.command(name="add-group")
def budget_add_group(
    name: str,
    group_type: str = typer.Option("expense", "--type", "-t", help="income, expense or goal"),
) -> None:
    """Add a budget group."""
    add_group_command(name, group_type)


@budget_app.command(name="add-category")
def budget_add_category(
    group: str,
    name: str,
    planned: str = typer.Option("0", "--planned", "-p", help="Planned amount per month"),
    fixed: bool = typer.Option(False, "--fixed", help="Paid by scheduled transactions, not daily spending"),
) -> None:
    """Add a category to a budget group."""
    add_category_command(group, name, planned, fixed)


@budget_app.command(name="set")
def budget_set(
    category: str,
    amount: str,
    month: str = typer.Option(None, "--month", help="Month to change (YYYY-MM, default: this month)"),
    future: bool = typer.Option(False, "--future", help="Change this and every later month"),
) -> None:
    """Set a category's planned amount."""
    set_amount_command(category, amount, month, future)


@budget_app.command(name="status")
def budget_status(
    month: str = typer.Option(None, "--month", help="Specific month (YYYY-MM)"),
) -> None:
    """Show planned, actual and remaining amounts per category."""
    status_command(month)


if __name__ == "__main__":
    app()
