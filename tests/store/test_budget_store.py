"""Tests for budget persistence."""

import sqlite3
from pathlib import Path

import pytest

from runway.domain.budget import BaseAmountChange, plan_base_amount_change, resolve_planned_amount
from runway.domain.models import BudgetOverride, CategoryName, Money, Month
from runway.store import (
    add_budget_category,
    add_budget_group,
    apply_base_amount_change,
    delete_budget_overrides_from,
    get_budget_category,
    init_database,
    list_budget_groups,
    list_budget_overrides,
    upsert_budget_override,
)


@pytest.fixture
def db(tmp_path: Path) -> Path:
    path = tmp_path / "runway.db"
    init_database(path)
    return path


@pytest.fixture
def groceries(db: Path) -> int:
    group_id = add_budget_group("Living", "expense", db_path=db)
    return add_budget_category(group_id, CategoryName("Groceries"), Money(30000), db_path=db)


class TestBudgetGroups:
    """Tests for budget groups and categories."""

    def test_nested_in_sort_order(self, db: Path) -> None:
        """Should return groups with their categories, both in sort order."""
        income = add_budget_group("Income", "income", db_path=db)
        living = add_budget_group("Living", "expense", sort_order=-1, db_path=db)
        add_budget_category(living, CategoryName("Rent"), Money(90000), is_fixed=True, db_path=db)
        add_budget_category(living, CategoryName("Groceries"), Money(30000), sort_order=-1, db_path=db)
        add_budget_category(income, CategoryName("Salary"), Money(250000), db_path=db)

        groups = list_budget_groups(db)

        assert [g.name for g in groups] == ["Living", "Income"]
        assert [c.name for c in groups[0].categories] == ["Groceries", "Rent"]
        assert groups[0].categories[1].is_fixed is True
        assert groups[1].type == "income"
        assert groups[1].categories[0].planned_amount == 250000

    def test_empty_group(self, db: Path) -> None:
        """Should list a group with no categories."""
        add_budget_group("Goals", "goal", db_path=db)

        assert list_budget_groups(db)[0].categories == ()

    def test_rejects_unknown_type(self, db: Path) -> None:
        """Should reject group types outside income, expense and goal."""
        with pytest.raises(ValueError, match="Group type"):
            add_budget_group("Misc", "savings", db_path=db)

    def test_rejects_duplicate_name(self, db: Path) -> None:
        """Should refuse a second group with the same name."""
        add_budget_group("Living", "expense", db_path=db)

        with pytest.raises(sqlite3.IntegrityError):
            add_budget_group("Living", "expense", db_path=db)

    def test_category_needs_group(self, db: Path) -> None:
        """Should refuse a category for a missing group."""
        with pytest.raises(ValueError, match="not found"):
            add_budget_category(99, CategoryName("Orphan"), db_path=db)

    def test_category_rejects_negative(self, db: Path) -> None:
        """Should refuse a negative planned amount."""
        group_id = add_budget_group("Living", "expense", db_path=db)

        with pytest.raises(ValueError, match="positive"):
            add_budget_category(group_id, CategoryName("Groceries"), Money(-1), db_path=db)

    def test_get_budget_category(self, db: Path, groceries: int) -> None:
        """Should find a category by name along with its group type."""
        found = get_budget_category(CategoryName("Groceries"), db)

        assert found is not None
        category, group_type = found
        assert category.id == groceries
        assert group_type == "expense"
        assert get_budget_category(CategoryName("Fuel"), db) is None


class TestBudgetOverrides:
    """Tests for monthly overrides."""

    def test_upsert_replaces(self, db: Path, groceries: int) -> None:
        """Should keep one override per category and month."""
        upsert_budget_override(groceries, Month("2024-03"), Money(45000), db)
        upsert_budget_override(groceries, Month("2024-03"), Money(50000), db)

        assert list_budget_overrides(db_path=db) == [BudgetOverride(groceries, Month("2024-03"), Money(50000))]

    def test_upsert_unknown_category(self, db: Path) -> None:
        """Should refuse an override for a missing category."""
        with pytest.raises(ValueError, match="unknown category"):
            upsert_budget_override(99, Month("2024-03"), Money(100), db)

    def test_range(self, db: Path, groceries: int) -> None:
        """Should limit overrides to an inclusive month range."""
        for month in ("2024-01", "2024-02", "2024-03", "2024-04"):
            upsert_budget_override(groceries, Month(month), Money(100), db)

        months = [o.month for o in list_budget_overrides(Month("2024-02"), Month("2024-03"), db)]

        assert months == ["2024-02", "2024-03"]

    def test_delete_from(self, db: Path, groceries: int) -> None:
        """Should delete the month and every later month."""
        for month in ("2024-01", "2024-02", "2024-03"):
            upsert_budget_override(groceries, Month(month), Money(100), db)

        assert delete_budget_overrides_from(groceries, Month("2024-02"), db) == 2
        assert [o.month for o in list_budget_overrides(db_path=db)] == ["2024-01"]


class TestApplyBaseAmountChange:
    """Tests for apply_base_amount_change."""

    def test_applies_plan(self, db: Path, groceries: int) -> None:
        """Should backfill prior months, set the base and clear later overrides."""
        upsert_budget_override(groceries, Month("2024-03"), Money(25000), db)
        upsert_budget_override(groceries, Month("2024-08"), Money(40000), db)
        found = get_budget_category(CategoryName("Groceries"), db)
        assert found is not None
        category = found[0]
        before = list_budget_overrides(db_path=db)

        apply_base_amount_change(plan_base_amount_change(category, Money(35000), Month("2024-06"), before), db)

        after_found = get_budget_category(CategoryName("Groceries"), db)
        assert after_found is not None
        updated = after_found[0]
        after = list_budget_overrides(db_path=db)
        assert updated.planned_amount == 35000
        assert len(after) == 12
        assert all(o.month < "2024-06" for o in after)
        assert resolve_planned_amount(updated, Month("2024-03"), after) == 25000
        assert resolve_planned_amount(updated, Month("2024-05"), after) == 30000
        assert resolve_planned_amount(updated, Month("2024-08"), after) == 35000

    def test_backfill_never_replaces(self, db: Path, groceries: int) -> None:
        """Should keep an existing override when the backfill names its month."""
        upsert_budget_override(groceries, Month("2024-05"), Money(1), db)
        change = BaseAmountChange(
            category_id=groceries,
            new_base=Money(35000),
            backfill=(BudgetOverride(groceries, Month("2024-05"), Money(30000)),),
            clear_from=Month("2024-06"),
        )

        apply_base_amount_change(change, db)

        assert list_budget_overrides(db_path=db) == [BudgetOverride(groceries, Month("2024-05"), Money(1))]

    def test_unknown_category(self, db: Path) -> None:
        """Should refuse a change for a missing category."""
        change = BaseAmountChange(category_id=99, new_base=Money(1), backfill=(), clear_from=Month("2024-06"))

        with pytest.raises(ValueError, match="not found"):
            apply_base_amount_change(change, db)
