"""Budget commands for managing groups, categories and planned amounts."""

import sqlite3
import sys

from rich.console import Console
from rich.table import Table

from runway.config import load_settings
from runway.dates import (
    add_months,
    format_date,
    month_end,
    month_key,
    month_range,
    parse_date,
    parse_month,
    today_in_timezone,
)
from runway.domain.budget import compute_category_stats, plan_base_amount_change, plan_single_month_override
from runway.domain.models import CategoryName, Money, Month
from runway.domain.transactions import format_money_display
from runway.store.queries import (
    add_budget_category,
    add_budget_group,
    apply_base_amount_change,
    get_budget_category,
    list_budget_groups,
    list_budget_overrides,
    list_transactions,
    upsert_budget_override,
)
from runway.store.schema import get_db_path

console = Console()

HISTORY_MONTHS = 6


def parse_money(amount_str: str, allow_negative: bool = False) -> Money | None:
    """Parse a major-unit money string to minor units.

    Args:
        amount_str: String containing amount in major units (e.g., "12.50").
        allow_negative: Whether negative amounts are accepted.

    Returns:
        Money amount in minor units, or None if invalid.
    """
    try:
        major = float(amount_str.replace(",", "").replace("£", "").replace("$", ""))
    except ValueError:
        return None
    if major < 0 and not allow_negative:
        return None
    return Money(round(major * 100))


def resolve_month(month: str | None, timezone: str) -> Month:
    """Normalize a YYYY-MM option, defaulting to the current month in the timezone.

    Raises:
        ValueError: If the month is malformed.
    """
    if month:
        return month_key(parse_month(month))
    return month_key(parse_date(today_in_timezone(timezone)))


def add_group_command(name: str, group_type: str) -> None:
    """Add a budget group."""
    db_path = get_db_path()

    try:
        group_id = add_budget_group(name, group_type, db_path=db_path)
        console.print(f"[green]✓[/green] Added {group_type} group: {name} (ID: {group_id})")
    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)


def add_category_command(group_name: str, name: str, planned: str, fixed: bool) -> None:
    """Add a category to a budget group."""
    db_path = get_db_path()
    settings = load_settings()

    planned_amount = parse_money(planned)
    if planned_amount is None:
        console.print("[red]Invalid amount[/red]", style="bold")
        sys.exit(1)

    try:
        group = next((g for g in list_budget_groups(db_path) if g.name == group_name), None)
        if group is None:
            console.print(f"[red]Budget group '{group_name}' not found[/red]", style="bold")
            sys.exit(1)

        category_id = add_budget_category(group.id, CategoryName(name), planned_amount, fixed, db_path=db_path)
        kind = "fixed" if fixed else "variable"
        console.print(
            f"[green]✓[/green] Added {kind} category {name} to {group_name}: "
            f"{format_money_display(planned_amount, settings['currency_symbol'], include_sign=False)}/month "
            f"(ID: {category_id})"
        )
    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)


def set_amount_command(category: str, amount: str, month: str | None, future: bool) -> None:
    """Set a category's planned amount for one month, or from a month onward."""
    db_path = get_db_path()
    settings = load_settings()
    symbol = settings["currency_symbol"]

    new_amount = parse_money(amount)
    if new_amount is None:
        console.print("[red]Invalid amount[/red]", style="bold")
        sys.exit(1)

    try:
        target_month = resolve_month(month, settings["timezone"])
        found = get_budget_category(CategoryName(category), db_path)
        if found is None:
            console.print(f"[red]Category '{category}' not found[/red]", style="bold")
            sys.exit(1)
        budget_category, _ = found

        _, _, label = month_range(target_month)

        if future:
            change = plan_base_amount_change(
                budget_category,
                new_amount,
                target_month,
                list_budget_overrides(db_path=db_path),
            )
            apply_base_amount_change(change, db_path)
            console.print(
                f"[green]✓[/green] {category} now planned at "
                f"{format_money_display(new_amount, symbol, include_sign=False)} from {label} onward"
            )
            if change.backfill:
                console.print(
                    f"[dim]Kept {format_money_display(budget_category.planned_amount, symbol, include_sign=False)} "
                    f"for {len(change.backfill)} earlier month(s)[/dim]"
                )
        else:
            override = plan_single_month_override(budget_category, target_month, new_amount)
            upsert_budget_override(override.category_id, override.month, override.amount, db_path)
            console.print(
                f"[green]✓[/green] {category} planned at "
                f"{format_money_display(new_amount, symbol, include_sign=False)} for {label} only"
            )

    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)


def status_command(month: str | None) -> None:
    """Show planned, actual and remaining amounts per category."""
    db_path = get_db_path()
    settings = load_settings()
    symbol = settings["currency_symbol"]

    try:
        target_month = resolve_month(month, settings["timezone"])
        history_start = add_months(target_month, -HISTORY_MONTHS)

        groups = list_budget_groups(db_path)
        if not groups:
            console.print("[yellow]No budget groups yet. Add one with 'runway budget add-group'.[/yellow]")
            return

        overrides = list_budget_overrides(history_start, target_month, db_path)
        ledger = list_transactions(
            format_date(parse_month(history_start)),
            format_date(month_end(target_month)),
            db_path,
        )
        stats = compute_category_stats(groups, overrides, ledger, target_month, HISTORY_MONTHS)

        _, _, label = month_range(target_month)
        table = Table(title=f"Budget - {label}")
        table.add_column("Type", style="dim")
        table.add_column("Category", style="magenta")
        table.add_column("Planned", justify="right")
        table.add_column("Actual", justify="right")
        table.add_column("Remaining", justify="right")
        table.add_column("Last Month", justify="right", style="dim")
        table.add_column(f"{HISTORY_MONTHS} Mo. Avg", justify="right", style="dim")
        table.add_column("Fixed", justify="center")

        for stat in stats:
            remaining = format_money_display(stat.remaining, symbol, include_sign=False)
            if stat.remaining < 0:
                remaining = f"[red]{remaining}[/red]"
            else:
                remaining = f"[green]{remaining}[/green]"

            table.add_row(
                stat.group_type,
                stat.category,
                format_money_display(stat.planned, symbol, include_sign=False),
                format_money_display(stat.actual, symbol, include_sign=False),
                remaining,
                format_money_display(stat.spent_last_month, symbol, include_sign=False),
                format_money_display(stat.average_spent, symbol, include_sign=False),
                "✓" if stat.is_fixed else "",
            )

        console.print(table)

    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)
