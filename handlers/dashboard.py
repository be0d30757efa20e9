"""
Dashboard handler: everything the home screen shows in one call.
"""

from handlers.profile import ensure_profile
from models.dates import utc_today
from models.transaction import Transaction
from services.analytics import totals
from services.preferences import Preferences
from services.state_store import get_state_store
from services.streak import effective_streak, streak_level
from services.supabase_client import get_client
from utils.decorators import lambda_handler, require_auth
from utils.responses import success_response

RECENT_TRANSACTIONS = 10


@lambda_handler()
@require_auth
def get_dashboard(event, context):
    """
    Profile, streak, balance and the latest transactions.

    GET /dashboard

    The profile row is created here on a user's first visit.
    """
    auth = event["auth"]
    client = get_client(auth["access_token"])

    profile = ensure_profile(client, auth)
    rows = (
        client.table("transactions")
        .select("*")
        .eq("user_id", auth["user_id"])
        .order("created_at", desc=True)
        .execute()
    )
    transactions = [Transaction.from_record(row) for row in rows]
    streak = effective_streak(profile, utc_today())

    return success_response(
        data={
            "profile": profile,
            "show_welcome": not profile.has_seen_welcome,
            "streak": {
                "current": streak,
                "max": profile.max_streak,
                "level": streak_level(streak).value,
            },
            "totals": totals(transactions),
            "recent_transactions": transactions[:RECENT_TRANSACTIONS],
            "dark_mode": Preferences(get_state_store(), auth["user_id"]).dark_mode(),
        }
    )
