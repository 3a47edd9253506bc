"""Balance and forecast commands."""

import sqlite3
import sys
from collections.abc import Sequence

from rich.console import Console
from rich.table import Table

from runway.commands.budget import resolve_month
from runway.config import load_settings
from runway.dates import add_months, format_date, iter_months, month_end, month_range, parse_month, today_in_timezone
from runway.domain.budget import index_overrides
from runway.domain.forecast import BurnRate, forecast_burn_rates
from runway.domain.models import Money, Month, Transaction
from runway.domain.timeline import build_balance_timeline, summarize_month_health
from runway.domain.transactions import format_money_display, parse_what_if, with_ghosts
from runway.store.queries import (
    compute_opening_balance,
    list_budget_groups,
    list_budget_overrides,
    list_transactions,
    sum_transactions_through,
)
from runway.store.schema import get_db_path

console = Console()

HEALTH_STYLES = {"Healthy": "green", "Caution": "yellow", "Critical": "red"}


def load_burn_rates(first: Month, last: Month, today: str, ledger: Sequence[Transaction]) -> dict[Month, BurnRate]:
    """Compute forecast burn rates for each month from stored budget data.

    Raises:
        ValueError: If stored overrides are inconsistent.
        sqlite3.Error: If database operation fails.
    """
    db_path = get_db_path()
    groups = list_budget_groups(db_path)
    known_ids = [category.id for group in groups for category in group.categories]
    overrides = index_overrides(list_budget_overrides(first, last, db_path), known_ids)
    return forecast_burn_rates(iter_months(first, last), today, groups, overrides, ledger)


def balance_command(month: str | None = None) -> None:
    """Show today's balance and the opening balance of a month."""
    db_path = get_db_path()

    try:
        settings = load_settings()
        symbol = settings["currency_symbol"]
        today = today_in_timezone(settings["timezone"])
        target_month = resolve_month(month, settings["timezone"])
        _, _, label = month_range(target_month)

        opening = compute_opening_balance(target_month, db_path)
        current = sum_transactions_through(today, db_path)

        opening_display = format_money_display(opening, symbol, include_sign=False)
        current_display = format_money_display(current, symbol, include_sign=False)
        style = "red" if current < 0 else "green"

        console.print(f"[bold]Opening balance for {label}:[/bold] {opening_display}")
        console.print(f"[bold]Balance today ({today}):[/bold] [{style}]{current_display}[/{style}]")

    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)


def forecast_command(
    month: str | None = None,
    months: int | None = None,
    no_projected: bool = False,
    what_if: list[str] | None = None,
    every_day: bool = False,
) -> None:
    """Show the day-by-day balance for a window of months with the budget forecast.

    Args:
        month: First month (YYYY-MM). Defaults to the current month.
        months: Number of months to show. Defaults to the projection_months setting.
        no_projected: Hide the budget-based projection.
        what_if: Hypothetical transactions as DATE:AMOUNT[:NAME], never saved.
        every_day: Show every day rather than only days with activity.
    """
    db_path = get_db_path()

    try:
        settings = load_settings()
        symbol = settings["currency_symbol"]
        today = today_in_timezone(settings["timezone"])

        first = resolve_month(month, settings["timezone"])
        count = months if months is not None else settings["projection_months"]
        if count < 1:
            raise ValueError("--months must be at least 1")
        last = add_months(first, count - 1)

        start = format_date(parse_month(first))
        end = format_date(month_end(last))

        ghosts = [parse_what_if(raw) for raw in what_if or []]
        for ghost in ghosts:
            if not start <= ghost.transaction_date <= end:
                console.print(f"[yellow]What-if on {ghost.transaction_date} is outside {start} to {end}[/yellow]")

        opening = compute_opening_balance(first, db_path)
        ledger = list_transactions(start, end, db_path)

        show_projected = settings["show_projected"] and not no_projected
        burn_rates: dict[Month, BurnRate] | None = None
        if show_projected:
            try:
                burn_rates = load_burn_rates(first, last, today, ledger)
            except (sqlite3.Error, ValueError) as e:
                console.print(f"[yellow]Budget data unavailable, showing actuals only: {e}[/yellow]")
                show_projected = False

        points = build_balance_timeline(
            opening,
            with_ghosts(ledger, ghosts),
            start,
            end,
            today,
            burn_rates=burn_rates,
            show_projected=show_projected,
            include_ghosts=bool(ghosts),
        )

        if not points:
            console.print("[yellow]Window too short to chart[/yellow]")
            return

        _, _, first_label = month_range(first)
        _, _, last_label = month_range(last)
        title = f"Balance - {first_label}" if first == last else f"Balance - {first_label} to {last_label}"
        if ghosts:
            title += f" (with {len(ghosts)} what-if)"

        active_days = {txn.transaction_date for txn in with_ghosts(ledger, ghosts)}

        table = Table(title=title)
        table.add_column("Date", style="cyan")
        table.add_column("Balance", justify="right")
        if show_projected:
            table.add_column("Projected", justify="right", style="dim")

        previous = opening
        for point in points:
            month_end_day = point.date == format_date(month_end(point.date[:7]))
            if not every_day and not (point.date in active_days or point.is_today or month_end_day):
                previous = point.balance
                continue

            balance = format_money_display(point.balance, symbol, include_sign=False)
            if point.balance < 0:
                balance = f"[red]{balance}[/red]"
            elif point.balance != previous:
                balance = f"[bold]{balance}[/bold]"
            previous = point.balance

            date_display = f"[reverse]{point.date}[/reverse]" if point.is_today else point.date
            row = [date_display, balance]
            if show_projected:
                projected = point.projected_balance
                row.append(format_money_display(projected, symbol, include_sign=False) if projected is not None else "")
            table.add_row(*row)

        console.print(table)

        if burn_rates:
            for forecast_month, burn in burn_rates.items():
                if burn.is_projected:
                    _, _, label = month_range(forecast_month)
                    console.print(
                        f"[dim]{label}: spending {format_money_display(burn.rate_per_day, symbol, include_sign=False)}"
                        f"/day from day {burn.start_day}[/dim]"
                    )

        threshold = Money(round(settings["warning_threshold"] * 100))
        health = summarize_month_health(points, threshold)
        if health is not None:
            style = HEALTH_STYLES[health.status]
            console.print(
                f"\n[{style}]{health.status}[/{style}]: lowest balance "
                f"{format_money_display(health.lowest_balance, symbol, include_sign=False)} on {health.lowest_date}"
            )

    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)
