"""
Debt management handlers for the MoniFly API.

This module provides CRUD operations for debts and their payments:
- Debts are listed together with their payments so pending amounts and
  progress can be derived
- Filters split debts into owed to me, I owe, and paid
- Deleting a debt removes its payments first
- Payments can never exceed the pending amount

The running ``remaining_amount`` column is maintained by the database;
the values derived here always come from the payments themselves.
"""

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import ValidationError

from models.dates import utc_today
from models.debt import (Debt, DebtFilter, DebtPaymentCreate, DebtSort,
                         DebtType, sort_debts)
from services.forms import DEBT_FORM, pydantic_errors
from services.supabase_client import SupabaseClient, get_client
from utils.decorators import (extract_path_params, lambda_handler,
                              require_auth, validate_json_body)
from utils.logging import setup_logger
from utils.responses import (HTTPStatus, not_found_response, success_response,
                             validation_error_response)

logger = setup_logger(__name__)

MARK_AS_PAID_NOTE = "Marcado como pagado completamente"


def _payments_by_debt(client: SupabaseClient, debt_ids: List[str]) -> Dict[str, list]:
    grouped: Dict[str, list] = {debt_id: [] for debt_id in debt_ids}
    if not debt_ids:
        return grouped
    rows = (
        client.table("debt_payments")
        .select("*")
        .in_("debt_id", debt_ids)
        .order("payment_date", desc=True)
        .execute()
    )
    for row in rows:
        grouped.setdefault(str(row["debt_id"]), []).append(row)
    return grouped


def load_debts(client: SupabaseClient, user_id: str) -> List[Debt]:
    """All of the user's debts with their payments attached."""
    rows = (
        client.table("debts")
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    payments = _payments_by_debt(client, [str(row["id"]) for row in rows])
    return [Debt.from_record(row, payments.get(str(row["id"]), [])) for row in rows]


def load_debt(client: SupabaseClient, user_id: str, debt_id: str) -> Optional[Debt]:
    rows = (
        client.table("debts")
        .select("*")
        .eq("id", debt_id)
        .eq("user_id", user_id)
        .execute()
    )
    if not rows:
        return None
    payments = _payments_by_debt(client, [debt_id])
    return Debt.from_record(rows[0], payments.get(debt_id, []))


def debt_totals(debts: List[Debt]) -> Dict[str, Decimal]:
    """Pending totals over unpaid debts: owed to me, I owe, and the net."""
    owed_to_me = sum(
        (d.pending_amount for d in debts if not d.is_paid and d.type == DebtType.OWED),
        Decimal("0"),
    )
    i_owe = sum(
        (d.pending_amount for d in debts if not d.is_paid and d.type == DebtType.OWING),
        Decimal("0"),
    )
    return {"owed_to_me": owed_to_me, "i_owe": i_owe, "net": owed_to_me - i_owe}


@lambda_handler()
@require_auth
def list_debts(event, context):
    """
    List the caller's debts.

    GET /debts?filter=all|me_deben|yo_debo|paid&sort=due_date|amount|created_at

    ``all`` lists every unpaid debt. Totals and per-filter counts always
    cover all debts, regardless of the filter.
    """
    params = event.get("queryStringParameters") or {}
    try:
        debt_filter = DebtFilter(params.get("filter") or DebtFilter.ALL.value)
        sort_by = DebtSort(params.get("sort") or DebtSort.DUE_DATE.value)
    except ValueError as e:
        return validation_error_response("Invalid filter or sort", {"error": str(e)})

    client = get_client(event["auth"]["access_token"])
    debts = load_debts(client, event["auth"]["user_id"])
    today = utc_today()

    visible = sort_debts([d for d in debts if d.matches(debt_filter)], sort_by)
    counts = {f.value: sum(1 for d in debts if d.matches(f)) for f in DebtFilter}

    return success_response(
        data={
            "debts": [debt.to_response(today) for debt in visible],
            "count": len(visible),
            "counts": counts,
            "totals": debt_totals(debts),
            "filter": debt_filter.value,
            "sort": sort_by.value,
        }
    )


@lambda_handler()
@require_auth
@extract_path_params("debt_id")
def get_debt(event, context):
    """
    Get one debt with its payments.

    GET /debts/{debt_id}
    """
    debt_id = event["path_params"]["debt_id"]
    client = get_client(event["auth"]["access_token"])

    debt = load_debt(client, event["auth"]["user_id"], debt_id)
    if not debt:
        return not_found_response("Debt", debt_id)

    return success_response(data={"debt": debt.to_response(utc_today())})


@lambda_handler()
@require_auth
@validate_json_body()
def create_debt(event, context):
    """
    Create a debt.

    POST /debts
    """
    user_id = event["auth"]["user_id"]
    payload = DEBT_FORM.payload_from(event["json_body"], user_id, utc_today())

    client = get_client(event["auth"]["access_token"])
    rows = client.table("debts").insert(payload).execute()
    debt = Debt.from_record(rows[0], [])

    logger.info("Debt created", extra={"user_id": user_id, "debt_id": debt.id})
    return success_response(
        data={"debt": debt.to_response(utc_today())},
        message=f"Debt '{debt.title}' created successfully",
        status_code=HTTPStatus.CREATED,
    )


def apply_debt_update(
    client: SupabaseClient, user_id: str, debt_id: str, payload: Dict
) -> Optional[Debt]:
    """
    Write a debt form payload over an existing debt.

    Payments already recorded are kept; the remaining amount is recomputed
    from them. Returns None when the debt does not exist.
    """
    existing = load_debt(client, user_id, debt_id)
    if not existing:
        return None

    payload = dict(payload)
    payload.pop("user_id", None)
    payload["paid_installments"] = existing.paid_installments
    remaining = Decimal(str(payload["original_amount"])) - existing.total_paid
    payload["remaining_amount"] = float(max(remaining, Decimal("0")))

    rows = (
        client.table("debts")
        .update(payload)
        .eq("id", debt_id)
        .eq("user_id", user_id)
        .execute()
    )
    if not rows:
        return None
    return Debt.from_record(rows[0], [p.model_dump() for p in existing.payments])


@lambda_handler()
@require_auth
@extract_path_params("debt_id")
@validate_json_body()
def update_debt(event, context):
    """
    Update a debt's details.

    PUT /debts/{debt_id}
    """
    user_id = event["auth"]["user_id"]
    debt_id = event["path_params"]["debt_id"]

    payload = DEBT_FORM.payload_from(event["json_body"], user_id, utc_today())
    client = get_client(event["auth"]["access_token"])
    debt = apply_debt_update(client, user_id, debt_id, payload)
    if not debt:
        return not_found_response("Debt", debt_id)

    return success_response(
        data={"debt": debt.to_response(utc_today())},
        message=f"Debt '{debt.title}' updated successfully",
    )


@lambda_handler()
@require_auth
@extract_path_params("debt_id")
def delete_debt(event, context):
    """
    Delete a debt and its payments.

    DELETE /debts/{debt_id}

    Payments go first; the two deletes are not atomic.
    """
    user_id = event["auth"]["user_id"]
    debt_id = event["path_params"]["debt_id"]
    client = get_client(event["auth"]["access_token"])

    if not load_debt(client, user_id, debt_id):
        return not_found_response("Debt", debt_id)

    client.table("debt_payments").delete().eq("debt_id", debt_id).execute()
    client.table("debts").delete().eq("id", debt_id).eq("user_id", user_id).execute()

    logger.info("Debt deleted", extra={"user_id": user_id, "debt_id": debt_id})
    return success_response(message="Debt deleted successfully")


def _insert_payment(client: SupabaseClient, payment: DebtPaymentCreate):
    rows = client.table("debt_payments").insert(payment.to_payload()).execute()
    return rows[0] if rows else payment.to_payload()


@lambda_handler()
@require_auth
@extract_path_params("debt_id")
@validate_json_body(required_fields=["amount"])
def add_payment(event, context):
    """
    Record a payment against a debt.

    POST /debts/{debt_id}/payments

    The amount must be positive and cannot exceed the pending amount.
    """
    body = event["json_body"]
    user_id = event["auth"]["user_id"]
    debt_id = event["path_params"]["debt_id"]
    client = get_client(event["auth"]["access_token"])

    debt = load_debt(client, user_id, debt_id)
    if not debt:
        return not_found_response("Debt", debt_id)

    fields = {
        key: value
        for key, value in body.items()
        if key in ("amount", "payment_date", "notes") and value != ""
    }
    try:
        payment = DebtPaymentCreate(debt_id=debt_id, **fields)
    except ValidationError as e:
        return validation_error_response(
            "Payment validation failed", {"errors": pydantic_errors(e)}
        )

    if payment.amount > debt.pending_amount:
        message = f"Amount cannot exceed the pending amount ({debt.pending_amount})"
        return validation_error_response(
            "Payment validation failed", {"errors": {"amount": message}}
        )

    row = _insert_payment(client, payment)
    debt = load_debt(client, user_id, debt_id)

    logger.info("Debt payment recorded", extra={"user_id": user_id, "debt_id": debt_id})
    return success_response(
        data={"payment": row, "debt": debt.to_response(utc_today()) if debt else None},
        message="Payment recorded",
        status_code=HTTPStatus.CREATED,
    )


@lambda_handler()
@require_auth
@extract_path_params("debt_id")
def mark_as_paid(event, context):
    """
    Settle a debt with one payment for the whole pending amount.

    POST /debts/{debt_id}/mark-paid
    """
    user_id = event["auth"]["user_id"]
    debt_id = event["path_params"]["debt_id"]
    client = get_client(event["auth"]["access_token"])

    debt = load_debt(client, user_id, debt_id)
    if not debt:
        return not_found_response("Debt", debt_id)
    if debt.is_paid:
        return validation_error_response(
            "Debt is already paid", {"errors": {"amount": "Nothing left to pay"}}
        )

    payment = DebtPaymentCreate(
        debt_id=debt_id, amount=debt.pending_amount, notes=MARK_AS_PAID_NOTE
    )
    row = _insert_payment(client, payment)
    debt = load_debt(client, user_id, debt_id)

    logger.info("Debt marked as paid", extra={"user_id": user_id, "debt_id": debt_id})
    return success_response(
        data={"payment": row, "debt": debt.to_response(utc_today()) if debt else None},
        message="Debt marked as paid",
    )
