"""Tests for runway.domain.snapshots pure functions."""

from runway.domain.models import DateStr, Money, Month, Transaction
from runway.domain.snapshots import invalidation_month, is_snapshot_stale, opening_balance_from_ledger


def txn(day: str, amount: int, status: str = "cleared") -> Transaction:
    return Transaction(name="Entry", amount=Money(amount), transaction_date=DateStr(day), status=status)


class TestOpeningBalanceFromLedger:
    """Tests for opening_balance_from_ledger."""

    def test_sums_strictly_before_month(self) -> None:
        """Should sum everything dated before the first of the month."""
        ledger = [txn("2024-01-10", 100000), txn("2024-02-29", -2500), txn("2024-03-01", -9999)]

        assert opening_balance_from_ledger(ledger, Month("2024-03")) == 97500

    def test_ignores_skipped(self) -> None:
        """Should never count skipped transactions."""
        ledger = [txn("2024-01-10", 100000), txn("2024-02-01", -2500, status="skipped")]

        assert opening_balance_from_ledger(ledger, Month("2024-03")) == 100000

    def test_empty_ledger(self) -> None:
        """Should be zero with no history."""
        assert opening_balance_from_ledger([], Month("2024-03")) == 0

    def test_matches_timeline_chaining(self) -> None:
        """Should equal the previous opening balance plus the previous month's activity."""
        ledger = [txn("2024-01-10", 100000), txn("2024-02-03", -2500), txn("2024-02-20", 700)]

        february = opening_balance_from_ledger(ledger, Month("2024-02"))
        march = opening_balance_from_ledger(ledger, Month("2024-03"))

        assert march == february - 2500 + 700


class TestInvalidationMonth:
    """Tests for invalidation_month."""

    def test_earliest_changed_month(self) -> None:
        """Should invalidate from the month of the earliest changed date."""
        assert invalidation_month(["2024-03-05", "2024-02-10", "2024-06-01"]) == "2024-02"

    def test_no_dates(self) -> None:
        """Should return None when nothing changed."""
        assert invalidation_month([]) is None


class TestIsSnapshotStale:
    """Tests for is_snapshot_stale."""

    def test_change_invalidates_its_month_and_later(self) -> None:
        """Should invalidate February onward for a change on 10 February, keeping January."""
        assert is_snapshot_stale(Month("2024-01"), "2024-02-10") is False
        assert is_snapshot_stale(Month("2024-02"), "2024-02-10") is True
        assert is_snapshot_stale(Month("2024-03"), "2024-02-10") is True
        assert is_snapshot_stale(Month("2025-01"), "2024-02-10") is True
