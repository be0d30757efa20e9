"""
Aggregations behind the analytics and dashboard views.

All functions are pure and work on already-fetched model lists.
"""

from collections import OrderedDict
from decimal import Decimal
from typing import Any, Dict, List

from models.goal import Goal, GoalStatus
from models.transaction import Transaction, TransactionType, UNCATEGORIZED

ZERO = Decimal("0")


def expenses_by_category(transactions: List[Transaction]) -> List[Dict[str, Any]]:
    """Expense totals per category, largest first."""
    totals: Dict[str, Decimal] = {}
    for transaction in transactions:
        if transaction.type != TransactionType.EXPENSE:
            continue
        category = transaction.category or UNCATEGORIZED
        totals[category] = totals.get(category, ZERO) + transaction.amount
    return [
        {"category": category, "amount": amount}
        for category, amount in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]


def monthly_totals(transactions: List[Transaction]) -> List[Dict[str, Any]]:
    """Income and expense per ``YYYY-MM``, oldest month first."""
    months: Dict[str, Dict[str, Decimal]] = {}
    for transaction in transactions:
        if transaction.created_at is None:
            continue
        month = transaction.created_at.strftime("%Y-%m")
        entry = months.setdefault(month, {"income": ZERO, "expense": ZERO})
        entry[transaction.type.value] += transaction.amount

    ordered = OrderedDict(sorted(months.items()))
    return [
        {"month": month, "income": entry["income"], "expense": entry["expense"]}
        for month, entry in ordered.items()
    ]


def totals(transactions: List[Transaction]) -> Dict[str, Decimal]:
    income = sum(
        (t.amount for t in transactions if t.type == TransactionType.INCOME), ZERO
    )
    expense = sum(
        (t.amount for t in transactions if t.type == TransactionType.EXPENSE), ZERO
    )
    return {"income": income, "expense": expense, "balance": income - expense}


def goal_stats(goals: List[Goal]) -> Dict[str, Any]:
    completed = [goal for goal in goals if goal.status == GoalStatus.COMPLETED]
    active = [goal for goal in goals if goal.status != GoalStatus.COMPLETED]

    average_progress = 0
    if active:
        average_progress = round(
            sum(goal.progress_percentage for goal in active) / len(active)
        )

    completion_rate = round(len(completed) / len(goals) * 100) if goals else 0

    return {
        "total_goals": len(goals),
        "active_goals": len(active),
        "completed_goals": len(completed),
        "total_saved": sum((goal.current_saved for goal in goals), ZERO),
        "total_target": sum((goal.target_amount for goal in goals), ZERO),
        "average_progress": average_progress,
        "completion_rate": completion_rate,
    }
