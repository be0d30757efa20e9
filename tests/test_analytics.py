"""Tests for the analytics aggregations."""

from decimal import Decimal

from models.goal import Goal
from models.transaction import Transaction
from services.analytics import (expenses_by_category, goal_stats,
                                monthly_totals, totals)


def transaction(amount, type_, category=None, created_at="2026-10-05T12:00:00+00:00"):
    return Transaction(
        amount=amount, type=type_, category=category, created_at=created_at
    )


TRANSACTIONS = [
    transaction(50, "expense", "comida", "2026-09-10T12:00:00+00:00"),
    transaction(20, "expense", "transporte"),
    transaction(30, "expense", "comida"),
    transaction(15, "expense", None),
    transaction(1000, "income", "salario"),
]


class TestTransactionAggregates:
    """Tests for income and expense aggregates."""

    def test_expenses_by_category(self):
        """Expenses are grouped by category, largest first."""
        assert expenses_by_category(TRANSACTIONS) == [
            {"category": "comida", "amount": Decimal("80")},
            {"category": "transporte", "amount": Decimal("20")},
            {"category": "Sin categoría", "amount": Decimal("15")},
        ]

    def test_monthly_totals(self):
        """Months are listed oldest first."""
        assert monthly_totals(TRANSACTIONS) == [
            {"month": "2026-09", "income": Decimal("0"), "expense": Decimal("50")},
            {"month": "2026-10", "income": Decimal("1000"), "expense": Decimal("65")},
        ]

    def test_undated_rows_skipped_in_months(self):
        """Rows without a timestamp are left out of the monthly view."""
        assert monthly_totals([transaction(5, "income", created_at=None)]) == []

    def test_totals(self):
        """Balance is income minus expenses."""
        assert totals(TRANSACTIONS) == {
            "income": Decimal("1000"),
            "expense": Decimal("115"),
            "balance": Decimal("885"),
        }


class TestGoalStats:
    """Tests for savings goal statistics."""

    def test_stats(self):
        """Averages cover active goals; the rate covers all."""
        goals = [
            Goal(name="a", target_amount=1000, current_saved=400),
            Goal(name="b", target_amount=100, current_saved=10),
            Goal(name="c", target_amount=50, current_saved=50, status="completed"),
        ]
        stats = goal_stats(goals)
        assert stats["total_goals"] == 3
        assert stats["active_goals"] == 2
        assert stats["completed_goals"] == 1
        assert stats["average_progress"] == 25
        assert stats["completion_rate"] == 33
        assert stats["total_saved"] == Decimal("460")
        assert stats["total_target"] == Decimal("1150")

    def test_no_goals(self):
        """An empty list gives zeros."""
        stats = goal_stats([])
        assert stats["average_progress"] == 0
        assert stats["completion_rate"] == 0
