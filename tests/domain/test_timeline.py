"""Tests for runway.domain.timeline pure functions."""

import pytest

from runway.dates import parse_date
from runway.domain.forecast import BurnRate
from runway.domain.models import DateStr, Money, Month, Transaction
from runway.domain.timeline import (
    BurnAccumulator,
    TimelinePoint,
    balance_on,
    build_balance_timeline,
    project_day,
    summarize_month_health,
)


def txn(day: str, amount: int, status: str = "cleared", is_ghost: bool = False) -> Transaction:
    return Transaction(
        name="Entry",
        amount=Money(amount),
        transaction_date=DateStr(day),
        status=status,
        is_ghost=is_ghost,
    )


def march_start(opening: int, ledger: list[Transaction]) -> list[TimelinePoint]:
    return build_balance_timeline(Money(opening), ledger, "2024-03-01", "2024-03-03", "2024-03-01")


class TestBuildBalanceTimeline:
    """Tests for build_balance_timeline."""

    def test_running_balance(self) -> None:
        """Should apply each day's transactions to the running balance."""
        ledger = [txn("2024-03-01", -200), txn("2024-03-03", 50)]

        points = build_balance_timeline(Money(1000), ledger, "2024-03-01", "2024-03-03", "2024-03-02")

        assert [p.balance for p in points] == [800, 800, 850]
        assert [p.date for p in points] == ["2024-03-01", "2024-03-02", "2024-03-03"]

    def test_today_and_future_tags(self) -> None:
        """Should tag today and the days after it without changing balances."""
        points = build_balance_timeline(Money(1000), [], "2024-03-01", "2024-03-03", "2024-03-02")

        assert [p.is_today for p in points] == [False, True, False]
        assert [p.is_future for p in points] == [False, False, True]

    def test_skipped_ignored(self) -> None:
        """Should never apply skipped transactions."""
        ledger = [txn("2024-03-01", -200), txn("2024-03-02", -999, status="skipped")]

        points = build_balance_timeline(Money(1000), ledger, "2024-03-01", "2024-03-02", "2024-03-01")

        assert [p.balance for p in points] == [800, 800]

    def test_ignores_rows_outside_window(self) -> None:
        """Should ignore rows dated before or after the window."""
        ledger = [txn("2024-02-29", -500), txn("2024-03-01", -200), txn("2024-03-05", -500)]

        points = build_balance_timeline(Money(1000), ledger, "2024-03-01", "2024-03-02", "2024-03-01")

        assert [p.balance for p in points] == [800, 800]

    def test_ghosts_only_when_requested(self) -> None:
        """Should apply what-if rows only when include_ghosts is set."""
        ledger = [txn("2024-03-02", -300, status="expected", is_ghost=True)]

        without = build_balance_timeline(Money(1000), ledger, "2024-03-01", "2024-03-02", "2024-03-01")
        with_ghosts = build_balance_timeline(
            Money(1000), ledger, "2024-03-01", "2024-03-02", "2024-03-01", include_ghosts=True
        )

        assert [p.balance for p in without] == [1000, 1000]
        assert [p.balance for p in with_ghosts] == [1000, 700]

    def test_single_day_window_is_empty(self) -> None:
        """Should return no points for a one-day window."""
        assert build_balance_timeline(Money(1000), [], "2024-03-01", "2024-03-01", "2024-03-01") == []

    def test_reversed_window_rejected(self) -> None:
        """Should reject an end before the start."""
        with pytest.raises(ValueError, match="before start"):
            build_balance_timeline(Money(1000), [], "2024-03-05", "2024-03-01", "2024-03-01")

    def test_idempotent_and_deltas_sum(self) -> None:
        """Should be repeatable and its deltas should sum to the overall change."""
        ledger = [
            txn("2024-03-01", -200),
            txn("2024-03-01", 75),
            txn("2024-03-09", -1234),
            txn("2024-03-15", 250000),
            txn("2024-03-20", -60, status="skipped"),
            txn("2024-03-31", -4000, status="expected"),
        ]

        first = build_balance_timeline(Money(5000), ledger, "2024-03-01", "2024-03-31", "2024-03-10")
        second = build_balance_timeline(Money(5000), ledger, "2024-03-01", "2024-03-31", "2024-03-10")

        assert first == second
        assert len(first) == 31
        deltas = [first[0].balance - 5000] + [b.balance - a.balance for a, b in zip(first, first[1:], strict=False)]
        assert sum(deltas) == first[-1].balance - 5000
        assert first[-1].balance == 5000 - 200 + 75 - 1234 + 250000 - 4000

    def test_does_not_mutate_ledger(self) -> None:
        """Should leave the ledger as it was."""
        ledger = [txn("2024-03-01", -200)]
        snapshot = list(ledger)

        build_balance_timeline(Money(1000), ledger, "2024-03-01", "2024-03-02", "2024-03-01")

        assert ledger == snapshot

    def test_no_projection_by_default(self) -> None:
        """Should leave projected balances empty unless asked."""
        rates = {Month("2024-03"): BurnRate(100.0, 1, True)}

        points = build_balance_timeline(Money(1000), [], "2024-03-01", "2024-03-02", "2024-03-01", burn_rates=rates)

        assert all(p.projected_balance is None for p in points)

    def test_projection_accumulates_from_start_day(self) -> None:
        """Should subtract one more day of burn on each day from start_day."""
        rates = {Month("2024-03"): BurnRate(100.0, 2, True)}

        points = build_balance_timeline(
            Money(1000), [], "2024-03-01", "2024-03-04", "2024-03-02", burn_rates=rates, show_projected=True
        )

        assert [p.projected_balance for p in points] == [1000.0, 900.0, 800.0, 700.0]

    def test_projection_layers_on_real_balance(self) -> None:
        """Should subtract the cumulative burn from each day's real balance."""
        rates = {Month("2024-03"): BurnRate(100.0, 1, True)}
        ledger = [txn("2024-03-02", 500)]

        points = build_balance_timeline(
            Money(1000), ledger, "2024-03-01", "2024-03-03", "2024-03-01", burn_rates=rates, show_projected=True
        )

        assert [p.projected_balance for p in points] == [900.0, 1300.0, 1200.0]

    def test_burn_carries_into_next_month(self) -> None:
        """Should keep the accumulated burn when a later month does not project."""
        rates = {
            Month("2024-03"): BurnRate(100.0, 30, True),
            Month("2024-04"): BurnRate(0.0, 0, False),
        }

        points = build_balance_timeline(
            Money(1000), [], "2024-03-30", "2024-04-02", "2024-03-30", burn_rates=rates, show_projected=True
        )

        assert [p.projected_balance for p in points] == [900.0, 800.0, 800.0, 800.0]

    def test_burn_compounds_across_projecting_months(self) -> None:
        """Should add the next month's burn on top of the carried burn."""
        rates = {
            Month("2024-03"): BurnRate(100.0, 30, True),
            Month("2024-04"): BurnRate(50.0, 1, True),
        }

        points = build_balance_timeline(
            Money(1000), [], "2024-03-30", "2024-04-02", "2024-03-30", burn_rates=rates, show_projected=True
        )

        assert [p.projected_balance for p in points] == [900.0, 800.0, 750.0, 700.0]

    def test_negative_burn_trends_up(self) -> None:
        """Should raise the projection for net-income months."""
        rates = {Month("2024-03"): BurnRate(-100.0, 1, True)}

        points = build_balance_timeline(
            Money(1000), [], "2024-03-01", "2024-03-02", "2024-03-01", burn_rates=rates, show_projected=True
        )

        assert [p.projected_balance for p in points] == [1100.0, 1200.0]

    def test_nothing_projected_before_burn_starts(self) -> None:
        """Should leave projections empty in months with no forecast before any burn."""
        rates = {Month("2024-03"): BurnRate(0.0, 0, False)}

        points = build_balance_timeline(
            Money(1000), [], "2024-03-01", "2024-03-02", "2024-03-01", burn_rates=rates, show_projected=True
        )

        assert all(p.projected_balance is None for p in points)


class TestProjectDay:
    """Tests for project_day."""

    def test_returns_new_accumulator(self) -> None:
        """Should thread state through a new accumulator."""
        start = BurnAccumulator()

        acc, projected = project_day(start, Money(1000), BurnRate(10.0, 1, True), parse_date("2024-03-05"))

        assert start == BurnAccumulator()
        assert acc == BurnAccumulator(cumulative_burn=10.0, started=True)
        assert projected == 990.0

    def test_started_burn_carries_even_when_not_positive(self) -> None:
        """Should keep projecting a started burn that has netted to zero or below."""
        for total in (0.0, -25.0):
            acc = BurnAccumulator(cumulative_burn=total, started=True)

            carried, projected = project_day(acc, Money(1000), None, parse_date("2024-04-01"))

            assert carried == acc
            assert projected == 1000 - total

    def test_nothing_to_project_before_start(self) -> None:
        """Should return None until burn has started."""
        acc, projected = project_day(BurnAccumulator(), Money(1000), None, parse_date("2024-04-01"))

        assert acc == BurnAccumulator()
        assert projected is None


class TestBalanceOn:
    """Tests for balance_on."""

    def test_finds_day(self) -> None:
        """Should return the end-of-day balance for a day in the timeline."""
        points = march_start(1000, [txn("2024-03-02", -100)])

        assert balance_on(points, "2024-03-02") == 900
        assert balance_on(points, "2024-3-3") == 900

    def test_outside_window(self) -> None:
        """Should return None for a day outside the timeline."""
        points = march_start(1000, [])

        assert balance_on(points, "2024-04-01") is None


class TestSummarizeMonthHealth:
    """Tests for summarize_month_health."""

    def test_healthy(self) -> None:
        """Should be healthy when the lowest point stays above the threshold."""
        points = march_start(100000, [txn("2024-03-02", -10000)])

        health = summarize_month_health(points, Money(50000))

        assert health is not None
        assert health.status == "Healthy"
        assert health.lowest_balance == 90000
        assert health.lowest_date == "2024-03-02"

    def test_caution(self) -> None:
        """Should warn when the lowest point dips under the threshold."""
        points = march_start(60000, [txn("2024-03-02", -20000)])

        health = summarize_month_health(points, Money(50000))

        assert health is not None
        assert health.status == "Caution"

    def test_critical(self) -> None:
        """Should be critical when the balance goes below zero."""
        points = build_balance_timeline(
            Money(1000),
            [txn("2024-03-02", -2000), txn("2024-03-03", 5000)],
            "2024-03-01",
            "2024-03-03",
            "2024-03-01",
        )

        health = summarize_month_health(points, Money(50000))

        assert health is not None
        assert health.status == "Critical"
        assert health.lowest_balance == -1000

    def test_earliest_low_wins(self) -> None:
        """Should report the first day the lowest balance is reached."""
        points = march_start(1000, [txn("2024-03-02", -500)])

        health = summarize_month_health(points, Money(0))

        assert health is not None
        assert health.lowest_date == "2024-03-02"

    def test_empty(self) -> None:
        """Should return None for an empty timeline."""
        assert summarize_month_health([], Money(50000)) is None
