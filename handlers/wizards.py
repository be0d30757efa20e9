"""
Step-by-step form handlers.

The web client walks the debt, transaction and goal forms one step at a
time. The draft lives in the state store between requests, one per user
and form, so the user can close the screen and come back to it. Drafts
expire after a week.
"""

import time
from datetime import date
from typing import Any, Dict, Optional

from handlers.debts import apply_debt_update
from handlers.transactions import insert_transaction
from models.dates import utc_today
from services.errors import BackendError, ErrorKind
from services.forms import FormDefinition, get_form
from services.state_store import get_state_store
from services.supabase_client import SupabaseClient, get_client
from services.wizard import StepWizard, WizardError, WizardSnapshot
from utils.decorators import (extract_path_params, lambda_handler,
                              require_auth, validate_json_body)
from utils.logging import setup_logger
from utils.responses import (not_found_response, success_response,
                             validation_error_response)

logger = setup_logger(__name__)

DRAFT_TTL_SECONDS = 7 * 24 * 60 * 60


def _draft_key(form: FormDefinition) -> str:
    return f"wizard_{form.name}"


def load_draft(user_id: str, form: FormDefinition) -> Optional[StepWizard]:
    data = get_state_store().get(user_id, _draft_key(form))
    if not data:
        return None
    return form.start().load(WizardSnapshot(**data))


def save_draft(user_id: str, form: FormDefinition, wizard: StepWizard) -> None:
    get_state_store().put(
        user_id,
        _draft_key(form),
        wizard.snapshot().model_dump(),
        expires_at=int(time.time()) + DRAFT_TTL_SECONDS,
    )


def discard_draft(user_id: str, form: FormDefinition) -> None:
    get_state_store().delete(user_id, _draft_key(form))


def _form_or_error(event):
    try:
        return get_form(event["path_params"]["form"]), None
    except WizardError as e:
        return None, validation_error_response(
            str(e), {"form": event["path_params"]["form"]}
        )


def _save_record(
    form: FormDefinition,
    client: SupabaseClient,
    user_id: str,
    record_id: Optional[str],
    data: Dict[str, Any],
    today: date,
) -> Dict[str, Any]:
    """Insert or update the record a finished wizard describes."""
    payload = form.build_payload(data, user_id, today)

    if record_id is None:
        if form.table == "transactions":
            transaction, streak = insert_transaction(client, user_id, payload, today)
            return {
                "record": transaction.model_dump(),
                "streak": streak.model_dump() if streak else None,
            }
        rows = client.table(form.table).insert(payload).execute()
        return {"record": rows[0] if rows else payload}

    if form.table == "debts":
        debt = apply_debt_update(client, user_id, record_id, payload)
        if debt is None:
            raise BackendError(ErrorKind.NOT_FOUND, f"Debt '{record_id}' not found")
        return {"record": debt.to_response(today)}

    payload.pop("user_id", None)
    rows = (
        client.table(form.table)
        .update(payload)
        .eq("id", record_id)
        .eq("user_id", user_id)
        .execute()
    )
    if not rows:
        raise BackendError(ErrorKind.NOT_FOUND, f"Record '{record_id}' not found")
    return {"record": rows[0]}


@lambda_handler()
@require_auth
@extract_path_params("form")
@validate_json_body()
def start_wizard(event, context):
    """
    Start a new draft, replacing any previous one for this form.

    POST /wizards/{form} with an optional ``record_id`` to edit that record
    """
    form, error = _form_or_error(event)
    if error:
        return error

    user_id = event["auth"]["user_id"]
    record_id = event["json_body"].get("record_id")

    record = None
    if record_id:
        client = get_client(event["auth"]["access_token"])
        rows = (
            client.table(form.table)
            .select("*")
            .eq("id", record_id)
            .eq("user_id", user_id)
            .execute()
        )
        if not rows:
            return not_found_response(form.name.capitalize(), record_id)
        record = rows[0]
        if form.table == "transactions" and record.get("type") != form.name:
            return validation_error_response(
                f"Record '{record_id}' is not a {form.name} transaction",
                {"errors": {"record_id": f"Edit it with the {record.get('type')} form"}},
            )

    wizard = form.start(record)
    save_draft(user_id, form, wizard)
    return success_response(data={"wizard": wizard.describe()})


@lambda_handler()
@require_auth
@extract_path_params("form")
def get_wizard(event, context):
    """
    GET /wizards/{form}
    """
    form, error = _form_or_error(event)
    if error:
        return error

    wizard = load_draft(event["auth"]["user_id"], form)
    if wizard is None:
        return not_found_response("Draft", form.name)
    return success_response(data={"wizard": wizard.describe()})


@lambda_handler()
@require_auth
@extract_path_params("form")
@validate_json_body(required_fields=["values"])
def update_wizard_fields(event, context):
    """
    Merge field values into the draft.

    PATCH /wizards/{form} with ``{"values": {...}}``
    """
    form, error = _form_or_error(event)
    if error:
        return error

    values = event["json_body"]["values"]
    if not isinstance(values, dict):
        return validation_error_response("Values must be an object")

    user_id = event["auth"]["user_id"]
    wizard = load_draft(user_id, form)
    if wizard is None:
        return not_found_response("Draft", form.name)

    wizard.update(values)
    save_draft(user_id, form, wizard)
    return success_response(data={"wizard": wizard.describe()})


@lambda_handler()
@require_auth
@extract_path_params("form")
@validate_json_body(required_fields=["action"])
def navigate_wizard(event, context):
    """
    Move between steps.

    POST /wizards/{form}/navigate with ``action`` one of ``advance``,
    ``retreat`` or ``jump`` (with ``step``). ``moved`` is false when the
    move was not allowed, e.g. the current step is incomplete.
    """
    form, error = _form_or_error(event)
    if error:
        return error

    body = event["json_body"]
    user_id = event["auth"]["user_id"]
    wizard = load_draft(user_id, form)
    if wizard is None:
        return not_found_response("Draft", form.name)

    action = body["action"]
    if action == "advance":
        moved = wizard.advance()
    elif action == "retreat":
        moved = wizard.retreat()
    elif action == "jump":
        try:
            moved = wizard.jump_to(int(body.get("step")))
        except (TypeError, ValueError, WizardError) as e:
            return validation_error_response("Invalid step", {"step": str(e)})
    else:
        return validation_error_response(
            "Unknown action",
            {"action": action, "allowed": ["advance", "retreat", "jump"]},
        )

    save_draft(user_id, form, wizard)
    return success_response(data={"moved": moved, "wizard": wizard.describe()})


@lambda_handler()
@require_auth
@extract_path_params("form")
def submit_wizard(event, context):
    """
    Save the record the draft describes.

    POST /wizards/{form}/submit

    A rejected submission keeps the draft, including the backend's error
    message, so the user can correct it.
    """
    form, error = _form_or_error(event)
    if error:
        return error

    user_id = event["auth"]["user_id"]
    wizard = load_draft(user_id, form)
    if wizard is None:
        return not_found_response("Draft", form.name)

    if not wizard.is_last_step:
        return validation_error_response(
            "Submit is only available from the last step",
            {"current_step_index": wizard.current_step_index},
        )

    client = get_client(event["auth"]["access_token"])
    today = utc_today()
    record_id = wizard.record_id
    try:
        result = wizard.submit(
            lambda data: _save_record(form, client, user_id, record_id, data, today)
        )
    except BackendError:
        save_draft(user_id, form, wizard)
        raise

    discard_draft(user_id, form)
    logger.info(
        "Wizard submitted",
        extra={"user_id": user_id, "form": form.name, "edit": record_id is not None},
    )
    return success_response(data=result, message="Saved")


@lambda_handler()
@require_auth
@extract_path_params("form")
def discard_wizard(event, context):
    """
    DELETE /wizards/{form}
    """
    form, error = _form_or_error(event)
    if error:
        return error

    discard_draft(event["auth"]["user_id"], form)
    return success_response(message="Draft discarded")
