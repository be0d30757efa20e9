"""
Analytics handler.

Aggregates are computed here from the caller's rows; nothing is stored.
"""

from models.goal import Goal
from models.transaction import Transaction
from services.analytics import (expenses_by_category, goal_stats,
                                monthly_totals, totals)
from services.supabase_client import get_client
from utils.decorators import lambda_handler, require_auth
from utils.responses import success_response


@lambda_handler()
@require_auth
def get_analytics(event, context):
    """
    Spending by category, monthly income and expense, totals and goal stats.

    GET /analytics
    """
    user_id = event["auth"]["user_id"]
    client = get_client(event["auth"]["access_token"])

    transaction_rows = (
        client.table("transactions")
        .select("*")
        .eq("user_id", user_id)
        .order("created_at")
        .execute()
    )
    goal_rows = client.table("goals").select("*").eq("user_id", user_id).execute()

    transactions = [Transaction.from_record(row) for row in transaction_rows]
    goals = [Goal.from_record(row) for row in goal_rows]

    return success_response(
        data={
            "expenses_by_category": expenses_by_category(transactions),
            "monthly": monthly_totals(transactions),
            "totals": totals(transactions),
            "goals": goal_stats(goals),
        }
    )
