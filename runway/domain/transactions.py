"""Pure functions for ledger processing.

This module contains the functional core for transaction operations:
- No I/O operations (no database, no console, no files)
- No side effects
- Pure data transformations
- Easy to test

All monetary amounts are in minor units (Money type).
"""

from collections.abc import Iterable, Iterator
from dataclasses import replace
from datetime import date
from typing import TypedDict

from runway.dates import normalize_date, parse_date
from runway.domain.models import DateStr, Money, Transaction

BALANCE_ADJUSTMENT_NAME = "Balance Adjustment"


class CsvMapping(TypedDict):
    """CSV column mapping configuration."""

    date_column: str
    description_column: str
    amount_column: str


def counted(ledger: Iterable[Transaction], include_ghosts: bool = False) -> Iterator[Transaction]:
    """Yield the transactions that take part in balances and aggregates.

    Skipped transactions never count. Ghost (what-if) transactions count only
    when explicitly requested.

    Args:
        ledger: Transactions to filter.
        include_ghosts: Whether simulated transactions should be counted.

    Yields:
        Transactions that count.
    """
    for txn in ledger:
        if txn.is_skipped:
            continue
        if txn.is_ghost and not include_ghosts:
            continue
        yield txn


def sum_through(ledger: Iterable[Transaction], until: date, include_ghosts: bool = False) -> Money:
    """Sum counted transactions dated on or before a date.

    Args:
        ledger: Transactions to sum.
        until: Last date to include.
        include_ghosts: Whether simulated transactions should be counted.

    Returns:
        Total in minor units.
    """
    return Money(
        sum(t.amount for t in counted(ledger, include_ghosts) if parse_date(t.transaction_date) <= until)
    )


def make_ghost(transaction_date: str, amount: Money, name: str = "What if") -> Transaction:
    """Create a simulated transaction for what-if exploration.

    Raises:
        ValueError: If the date is malformed.
    """
    return Transaction(
        name=name,
        amount=amount,
        transaction_date=normalize_date(transaction_date),
        type="income" if amount >= 0 else "expense",
        status="expected",
        is_ghost=True,
    )


def parse_what_if(raw: str) -> Transaction:
    """Parse a DATE:AMOUNT[:NAME] what-if string into a ghost transaction.

    The amount is in major units (e.g., "-120.50").

    Raises:
        ValueError: If the string is malformed.
    """
    parts = raw.split(":", 2)
    if len(parts) < 2:
        raise ValueError(f"What-if '{raw}' must look like DATE:AMOUNT[:NAME]")

    try:
        amount = Money(round(float(parts[1]) * 100))
    except ValueError as e:
        raise ValueError(f"Invalid what-if amount '{parts[1]}'") from e

    name = parts[2].strip() if len(parts) == 3 and parts[2].strip() else "What if"
    return make_ghost(parts[0], amount, name)


def with_ghosts(ledger: Iterable[Transaction], ghosts: Iterable[Transaction]) -> list[Transaction]:
    """Combine a persisted ledger with simulated transactions.

    Raises:
        ValueError: If a simulated transaction is not marked as a ghost.
    """
    combined = list(ledger)
    for ghost in ghosts:
        if not ghost.is_ghost:
            raise ValueError(f"Transaction '{ghost.name}' is not a ghost transaction")
        combined.append(ghost)
    return combined


def calculate_balance_adjustment(target: Money, current: Money) -> Money | None:
    """Calculate the adjustment needed to bring a balance to a target.

    Args:
        target: Desired balance in minor units.
        current: Balance according to the ledger in minor units.

    Returns:
        Signed adjustment, or None if the balance already matches.
    """
    diff = Money(target - current)
    if diff == 0:
        return None
    return diff


def make_balance_adjustment(adjustment_date: str, diff: Money) -> Transaction:
    """Build the cleared transaction that records a balance adjustment."""
    return Transaction(
        name=BALANCE_ADJUSTMENT_NAME,
        amount=diff,
        transaction_date=normalize_date(adjustment_date),
        type="income" if diff >= 0 else "expense",
        status="cleared",
    )


def strip_recurrence(txn: Transaction) -> Transaction:
    """Return a copy of a transaction with all recurrence fields cleared."""
    return replace(
        txn,
        is_recurring=False,
        recurrence_id=None,
        recur_frequency=None,
        recur_period=None,
        recur_end_date=None,
    )


def format_money_display(amount: Money | float, symbol: str = "£", include_sign: bool = True) -> str:
    """Format money amount for display.

    Args:
        amount: Amount in minor units.
        symbol: Currency symbol.
        include_sign: Whether to include + or - sign.

    Returns:
        Formatted string (e.g., "-£123.45" or "£123.45").
    """
    major = abs(amount) / 100
    formatted = f"{symbol}{major:,.2f}"

    if include_sign:
        if amount < 0:
            return f"-{formatted}"
        else:
            return f"+{formatted}"
    elif amount < 0:
        return f"-{formatted}"
    return formatted


def analyze_csv_columns(headers: list[str]) -> dict[str, str]:
    """Analyze CSV headers and suggest column mappings.

    Args:
        headers: List of CSV column names.

    Returns:
        Dictionary with suggested mappings for date, description, amount (empty string if not detected).
    """
    mappings: dict[str, str] = {
        "date": "",
        "description": "",
        "amount": "",
    }

    headers_lower = [h.lower() for h in headers]

    for i, header in enumerate(headers_lower):
        if not mappings["date"] and "date" in header:
            mappings["date"] = headers[i]

        if not mappings["description"]:
            if "merchant" in header and "name" in header:
                mappings["description"] = headers[i]
            elif "description" in header or header == "name":
                mappings["description"] = headers[i]

        if not mappings["amount"] and "amount" in header and "currency" not in header:
            mappings["amount"] = headers[i]

    return mappings


def parse_csv_transaction(row: dict[str, str], mapping: CsvMapping, negate: bool = False) -> Transaction | None:
    """Parse a CSV row into a cleared, automatically sourced transaction.

    Args:
        row: CSV row as dictionary, with the date already normalized to YYYY-MM-DD.
        mapping: Column mapping configuration.
        negate: Whether to flip the sign of the amount.

    Returns:
        Transaction if valid, None if row should be skipped.
    """
    raw_date = str(row.get(mapping["date_column"], "") or "").strip()
    if not raw_date:
        return None

    try:
        txn_date: DateStr = normalize_date(raw_date)
    except ValueError:
        return None

    description = str(row.get(mapping["description_column"], "") or "").strip() or "Unknown"

    raw_amount = str(row.get(mapping["amount_column"], "") or "").strip()
    raw_amount = raw_amount.replace("£", "").replace("$", "").replace(",", "")
    if not raw_amount:
        return None

    try:
        amount = round(float(raw_amount) * 100)
    except ValueError:
        return None

    if negate:
        amount = -amount

    return Transaction(
        name=description,
        amount=Money(amount),
        transaction_date=txn_date,
        type="income" if amount >= 0 else "expense",
        status="cleared",
        source="automatic",
    )
