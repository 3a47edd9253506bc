"""Tests for runway.domain.transactions pure functions."""

from datetime import date

import pytest

from runway.domain.models import DateStr, Money, Transaction
from runway.domain.transactions import (
    BALANCE_ADJUSTMENT_NAME,
    CsvMapping,
    analyze_csv_columns,
    calculate_balance_adjustment,
    counted,
    format_money_display,
    make_balance_adjustment,
    make_ghost,
    parse_csv_transaction,
    parse_what_if,
    strip_recurrence,
    sum_through,
    with_ghosts,
)

MAPPING = CsvMapping(date_column="Date", description_column="Description", amount_column="Amount")


def txn(day: str, amount: int, status: str = "cleared", is_ghost: bool = False) -> Transaction:
    return Transaction(
        name="Entry",
        amount=Money(amount),
        transaction_date=DateStr(day),
        status=status,
        is_ghost=is_ghost,
    )


class TestCounted:
    """Tests for counted."""

    def test_drops_skipped(self) -> None:
        """Should drop skipped transactions for every other status."""
        ledger = [txn("2024-03-01", 1, s) for s in ("cleared", "pending", "expected", "skipped")]

        assert [t.status for t in counted(ledger)] == ["cleared", "pending", "expected"]

    def test_ghosts_opt_in(self) -> None:
        """Should include ghosts only when asked."""
        ledger = [txn("2024-03-01", 1), txn("2024-03-02", 2, status="expected", is_ghost=True)]

        assert len(list(counted(ledger))) == 1
        assert len(list(counted(ledger, include_ghosts=True))) == 2

    def test_skipped_ghost_never_counts(self) -> None:
        """Should drop a skipped ghost even when ghosts are included."""
        ledger = [txn("2024-03-01", 1, status="skipped", is_ghost=True)]

        assert list(counted(ledger, include_ghosts=True)) == []


class TestSumThrough:
    """Tests for sum_through."""

    def test_inclusive_of_day(self) -> None:
        """Should include transactions dated on the day."""
        ledger = [txn("2024-03-01", 100), txn("2024-03-02", 50), txn("2024-03-03", 25)]

        assert sum_through(ledger, date(2024, 3, 2)) == 150

    def test_compares_dates_not_strings(self) -> None:
        """Should order unpadded dates by calendar value."""
        ledger = [txn("2024-9-30", 100), txn("2024-10-01", 50)]

        assert sum_through(ledger, date(2024, 9, 30)) == 100


class TestWhatIf:
    """Tests for what-if ghost transactions."""

    def test_make_ghost(self) -> None:
        """Should build an expected ghost with a normalized date."""
        ghost = make_ghost("2024-3-9", Money(-5000), "Holiday")

        assert ghost.is_ghost is True
        assert ghost.status == "expected"
        assert ghost.transaction_date == "2024-03-09"
        assert ghost.type == "expense"

    def test_parse_what_if(self) -> None:
        """Should parse DATE:AMOUNT:NAME in major units."""
        ghost = parse_what_if("2024-03-10:-120.50:Car repair")

        assert ghost.amount == -12050
        assert ghost.name == "Car repair"
        assert ghost.is_ghost is True

    def test_parse_what_if_default_name(self) -> None:
        """Should default the name when omitted."""
        ghost = parse_what_if("2024-03-10:250")

        assert ghost.amount == 25000
        assert ghost.name == "What if"
        assert ghost.type == "income"

    def test_parse_what_if_rejects_garbage(self) -> None:
        """Should reject strings without a date and amount."""
        for raw in ("2024-03-10", "2024-03-10:lots", "soon:-10"):
            with pytest.raises(ValueError):
                parse_what_if(raw)

    def test_with_ghosts_requires_ghosts(self) -> None:
        """Should refuse to mix a real transaction in as a ghost."""
        with pytest.raises(ValueError, match="not a ghost"):
            with_ghosts([], [txn("2024-03-01", 1)])

    def test_with_ghosts_leaves_ledger(self) -> None:
        """Should return a new list and leave the ledger untouched."""
        ledger = [txn("2024-03-01", 1)]

        combined = with_ghosts(ledger, [make_ghost("2024-03-02", Money(5))])

        assert len(combined) == 2
        assert len(ledger) == 1


class TestBalanceAdjustment:
    """Tests for balance adjustment helpers."""

    def test_difference(self) -> None:
        """Should return the signed difference to the target."""
        assert calculate_balance_adjustment(Money(150000), Money(120000)) == 30000
        assert calculate_balance_adjustment(Money(100000), Money(120000)) == -20000

    def test_no_difference(self) -> None:
        """Should return None when the balance already matches."""
        assert calculate_balance_adjustment(Money(100000), Money(100000)) is None

    def test_adjustment_transaction(self) -> None:
        """Should build a cleared adjustment row."""
        adjustment = make_balance_adjustment("2024-03-10", Money(-2000))

        assert adjustment.name == BALANCE_ADJUSTMENT_NAME
        assert adjustment.amount == -2000
        assert adjustment.status == "cleared"
        assert adjustment.type == "expense"
        assert adjustment.is_recurring is False


class TestStripRecurrence:
    """Tests for strip_recurrence."""

    def test_clears_every_recurrence_field(self) -> None:
        """Should clear all recurrence fields and nothing else."""
        recurring = Transaction(
            name="Rent",
            amount=Money(-5000),
            transaction_date=DateStr("2024-01-15"),
            is_recurring=True,
            recurrence_id="abc",
            recur_frequency=1,
            recur_period="months",
            recur_end_date=DateStr("2025-01-15"),
        )

        stripped = strip_recurrence(recurring)

        assert stripped.is_recurring is False
        assert stripped.recurrence_id is None
        assert stripped.recur_frequency is None
        assert stripped.recur_period is None
        assert stripped.recur_end_date is None
        assert stripped.name == "Rent"
        assert stripped.amount == -5000


class TestFormatMoneyDisplay:
    """Tests for format_money_display."""

    def test_signed(self) -> None:
        """Should show a sign by default."""
        assert format_money_display(Money(-12345)) == "-£123.45"
        assert format_money_display(Money(12345)) == "+£123.45"

    def test_unsigned(self) -> None:
        """Should drop the plus sign when asked."""
        assert format_money_display(Money(12345), include_sign=False) == "£123.45"
        assert format_money_display(Money(-12345), include_sign=False) == "-£123.45"

    def test_thousands_and_symbol(self) -> None:
        """Should group thousands and use the given symbol."""
        assert format_money_display(Money(123456789), "$", include_sign=False) == "$1,234,567.89"

    def test_fractional_minor_units(self) -> None:
        """Should format fractional burn amounts."""
        assert format_money_display(1000.4, include_sign=False) == "£10.00"


class TestAnalyzeCsvColumns:
    """Tests for analyze_csv_columns."""

    def test_detects_standard_columns(self) -> None:
        """Should detect standard date, description, amount columns."""
        result = analyze_csv_columns(["Date", "Description", "Amount"])

        assert result["date"] == "Date"
        assert result["description"] == "Description"
        assert result["amount"] == "Amount"

    def test_case_insensitive_detection(self) -> None:
        """Should detect columns regardless of case."""
        result = analyze_csv_columns(["DATE", "DESCRIPTION", "AMOUNT"])

        assert result["date"] == "DATE"
        assert result["amount"] == "AMOUNT"

    def test_detects_merchant_name_as_description(self) -> None:
        """Should use 'merchant name' for description."""
        assert analyze_csv_columns(["Date", "Merchant Name", "Amount"])["description"] == "Merchant Name"

    def test_ignores_currency_amount_columns(self) -> None:
        """Should ignore columns with 'currency' in the name."""
        assert analyze_csv_columns(["Date", "Amount Currency", "Amount"])["amount"] == "Amount"

    def test_returns_empty_for_missing_columns(self) -> None:
        """Should return empty strings for undetected columns."""
        result = analyze_csv_columns(["Column1", "Column2"])

        assert result == {"date": "", "description": "", "amount": ""}


class TestParseCsvTransaction:
    """Tests for parse_csv_transaction."""

    def test_parses_valid_row(self) -> None:
        """Should parse a row into a cleared, automatically sourced transaction."""
        row = {"Date": "2025-01-15", "Description": "Coffee Shop", "Amount": "-4.50"}

        result = parse_csv_transaction(row, MAPPING)

        assert result is not None
        assert result.transaction_date == "2025-01-15"
        assert result.name == "Coffee Shop"
        assert result.amount == -450
        assert result.status == "cleared"
        assert result.source == "automatic"
        assert result.type == "expense"

    def test_negate(self) -> None:
        """Should flip the sign when the export shows spending as positive."""
        row = {"Date": "2025-01-15", "Description": "Coffee Shop", "Amount": "4.50"}

        result = parse_csv_transaction(row, MAPPING, negate=True)

        assert result is not None
        assert result.amount == -450

    def test_strips_currency_formatting(self) -> None:
        """Should accept symbols and thousands separators."""
        row = {"Date": "2025-01-15", "Description": "Salary", "Amount": "£1,234.56"}

        result = parse_csv_transaction(row, MAPPING)

        assert result is not None
        assert result.amount == 123456
        assert result.type == "income"

    def test_truncates_timestamp(self) -> None:
        """Should keep only the date of a timestamp."""
        row = {"Date": "2025-01-15T10:30:00Z", "Description": "Test", "Amount": "10.00"}

        result = parse_csv_transaction(row, MAPPING)

        assert result is not None
        assert result.transaction_date == "2025-01-15"

    def test_handles_missing_description(self) -> None:
        """Should use 'Unknown' for a missing description."""
        result = parse_csv_transaction({"Date": "2025-01-15", "Description": "", "Amount": "5.00"}, MAPPING)

        assert result is not None
        assert result.name == "Unknown"

    def test_skips_bad_rows(self) -> None:
        """Should return None for rows missing a usable date or amount."""
        rows = [
            {"Date": "", "Description": "Test", "Amount": "5.00"},
            {"Date": "15/01/2025", "Description": "Test", "Amount": "5.00"},
            {"Date": "2025-01-15", "Description": "Test", "Amount": ""},
            {"Date": "2025-01-15", "Description": "Test", "Amount": "invalid"},
            {"Description": "Test"},
        ]

        for row in rows:
            assert parse_csv_transaction(row, MAPPING) is None
