"""
Income and expense handlers.

Every call runs under the caller's Supabase token; row-level security
restricts reads and writes to the caller's own rows.
"""

from datetime import date
from typing import Any, Dict, Optional, Tuple

from models.dates import utc_today
from models.transaction import Transaction, TransactionType
from services.forms import transaction_form
from services.streak import StreakChannel, StreakService, StreakUpdate
from services.supabase_client import SupabaseClient, get_client
from utils.decorators import (extract_path_params, lambda_handler,
                              require_auth, validate_json_body)
from utils.logging import setup_logger
from utils.responses import (HTTPStatus, not_found_response, success_response,
                             validation_error_response)

logger = setup_logger(__name__)

# Streak updates caused by new transactions are published here
streak_channel = StreakChannel()

DEFAULT_LIMIT = 100


def _transaction_type(value):
    try:
        return TransactionType(value)
    except ValueError:
        return None


@lambda_handler()
@require_auth
def list_transactions(event, context):
    """
    List the caller's transactions, newest first.

    GET /transactions?type=expense&limit=20
    """
    params = event.get("queryStringParameters") or {}
    client = get_client(event["auth"]["access_token"])

    user_id = event["auth"]["user_id"]
    query = client.table("transactions").select("*").eq("user_id", user_id)
    if params.get("type"):
        transaction_type = _transaction_type(params["type"])
        if transaction_type is None:
            return validation_error_response(
                "Invalid transaction type", {"type": params["type"]}
            )
        query = query.eq("type", transaction_type.value)

    try:
        limit = int(params.get("limit") or DEFAULT_LIMIT)
    except ValueError:
        return validation_error_response(
            "Limit must be a number", {"limit": params["limit"]}
        )

    rows = query.order("created_at", desc=True).limit(limit).execute()
    transactions = [Transaction.from_record(row) for row in rows]
    return success_response(
        data={"transactions": transactions, "count": len(transactions)}
    )


def insert_transaction(
    client: SupabaseClient, user_id: str, payload: Dict[str, Any], today: date
) -> Tuple[Transaction, Optional[StreakUpdate]]:
    """Insert a transaction and count it as the day's streak activity."""
    rows = client.table("transactions").insert(payload).execute()
    transaction = Transaction.from_record(rows[0])
    streak = StreakService(client, streak_channel).record_activity(user_id, today)
    return transaction, streak


@lambda_handler()
@require_auth
@validate_json_body(required_fields=["type"])
def create_transaction(event, context):
    """
    Record an income or an expense.

    POST /transactions

    Creating a transaction counts as the day's activity for the streak.
    """
    body = event["json_body"]
    user_id = event["auth"]["user_id"]

    transaction_type = _transaction_type(body["type"])
    if transaction_type is None:
        return validation_error_response(
            "Invalid transaction type", {"type": body["type"]}
        )

    today = utc_today()
    payload = transaction_form(transaction_type).payload_from(body, user_id, today)

    client = get_client(event["auth"]["access_token"])
    transaction, streak = insert_transaction(client, user_id, payload, today)

    logger.info(
        "Transaction created",
        extra={"user_id": user_id, "transaction_type": transaction_type.value},
    )
    return success_response(
        data={
            "transaction": transaction,
            "streak": streak.model_dump() if streak else None,
        },
        message="Transaction saved",
        status_code=HTTPStatus.CREATED,
    )


@lambda_handler()
@require_auth
@extract_path_params("transaction_id")
@validate_json_body(required_fields=["type"])
def update_transaction(event, context):
    """
    Replace the fields of an existing transaction.

    PUT /transactions/{transaction_id}
    """
    body = event["json_body"]
    user_id = event["auth"]["user_id"]
    transaction_id = event["path_params"]["transaction_id"]

    transaction_type = _transaction_type(body["type"])
    if transaction_type is None:
        return validation_error_response(
            "Invalid transaction type", {"type": body["type"]}
        )

    form = transaction_form(transaction_type)
    payload = form.payload_from(body, user_id, utc_today())
    payload.pop("user_id")

    client = get_client(event["auth"]["access_token"])
    rows = (
        client.table("transactions")
        .update(payload)
        .eq("id", transaction_id)
        .eq("user_id", user_id)
        .execute()
    )
    if not rows:
        return not_found_response("Transaction", transaction_id)

    return success_response(
        data={"transaction": Transaction.from_record(rows[0])},
        message="Transaction updated",
    )


@lambda_handler()
@require_auth
@extract_path_params("transaction_id")
def delete_transaction(event, context):
    """
    Delete a transaction.

    DELETE /transactions/{transaction_id}
    """
    user_id = event["auth"]["user_id"]
    transaction_id = event["path_params"]["transaction_id"]

    client = get_client(event["auth"]["access_token"])
    rows = (
        client.table("transactions")
        .delete()
        .eq("id", transaction_id)
        .eq("user_id", user_id)
        .execute()
    )
    if not rows:
        return not_found_response("Transaction", transaction_id)

    return success_response(message="Transaction deleted")
