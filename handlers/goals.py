"""
Savings goal handlers.

A goal's status is never submitted by the client: it is ``completed``
whenever the saved amount reaches the target, and ``active`` otherwise.
"""

from pydantic import ValidationError

from models.dates import utc_today
from models.goal import Goal, GoalContribution
from services.forms import GOAL_FORM, pydantic_errors
from services.supabase_client import get_client
from utils.decorators import (extract_path_params, lambda_handler,
                              require_auth, validate_json_body)
from utils.logging import setup_logger
from utils.responses import (HTTPStatus, not_found_response, success_response,
                             validation_error_response)

logger = setup_logger(__name__)


@lambda_handler()
@require_auth
def list_goals(event, context):
    """
    List the caller's goals with progress and the monthly amount needed.

    GET /goals
    """
    client = get_client(event["auth"]["access_token"])
    rows = (
        client.table("goals")
        .select("*")
        .eq("user_id", event["auth"]["user_id"])
        .order("created_at", desc=True)
        .execute()
    )
    today = utc_today()
    goals = [Goal.from_record(row).to_response(today) for row in rows]
    return success_response(data={"goals": goals, "count": len(goals)})


@lambda_handler()
@require_auth
@validate_json_body()
def create_goal(event, context):
    """
    Create a goal.

    POST /goals
    """
    user_id = event["auth"]["user_id"]
    today = utc_today()
    payload = GOAL_FORM.payload_from(event["json_body"], user_id, today)

    client = get_client(event["auth"]["access_token"])
    rows = client.table("goals").insert(payload).execute()
    goal = Goal.from_record(rows[0])

    logger.info("Goal created", extra={"user_id": user_id, "goal_id": goal.id})
    return success_response(
        data={"goal": goal.to_response(today)},
        message=f"Goal '{goal.name}' created successfully",
        status_code=HTTPStatus.CREATED,
    )


@lambda_handler()
@require_auth
@extract_path_params("goal_id")
@validate_json_body()
def update_goal(event, context):
    """
    Update a goal; the status is derived again from the new amounts.

    PUT /goals/{goal_id}
    """
    user_id = event["auth"]["user_id"]
    goal_id = event["path_params"]["goal_id"]
    today = utc_today()

    payload = GOAL_FORM.payload_from(event["json_body"], user_id, today)
    payload.pop("user_id")

    client = get_client(event["auth"]["access_token"])
    rows = (
        client.table("goals")
        .update(payload)
        .eq("id", goal_id)
        .eq("user_id", user_id)
        .execute()
    )
    if not rows:
        return not_found_response("Goal", goal_id)

    goal = Goal.from_record(rows[0])
    return success_response(
        data={"goal": goal.to_response(today)},
        message=f"Goal '{goal.name}' updated successfully",
    )


@lambda_handler()
@require_auth
@extract_path_params("goal_id")
def delete_goal(event, context):
    """
    Delete a goal.

    DELETE /goals/{goal_id}
    """
    user_id = event["auth"]["user_id"]
    goal_id = event["path_params"]["goal_id"]

    client = get_client(event["auth"]["access_token"])
    rows = (
        client.table("goals")
        .delete()
        .eq("id", goal_id)
        .eq("user_id", user_id)
        .execute()
    )
    if not rows:
        return not_found_response("Goal", goal_id)

    return success_response(message="Goal deleted successfully")


@lambda_handler()
@require_auth
@extract_path_params("goal_id")
@validate_json_body(required_fields=["amount"])
def add_contribution(event, context):
    """
    Add savings to a goal.

    POST /goals/{goal_id}/contributions

    Works on overdue goals too; the goal completes once the target is reached.
    """
    user_id = event["auth"]["user_id"]
    goal_id = event["path_params"]["goal_id"]
    try:
        contribution = GoalContribution(amount=event["json_body"]["amount"])
    except ValidationError as e:
        return validation_error_response(
            "Contribution validation failed", {"errors": pydantic_errors(e)}
        )

    client = get_client(event["auth"]["access_token"])
    rows = (
        client.table("goals")
        .select("*")
        .eq("id", goal_id)
        .eq("user_id", user_id)
        .execute()
    )
    if not rows:
        return not_found_response("Goal", goal_id)

    rows = (
        client.table("goals")
        .update(contribution.apply(Goal.from_record(rows[0])))
        .eq("id", goal_id)
        .eq("user_id", user_id)
        .execute()
    )
    goal = Goal.from_record(rows[0])

    logger.info(
        "Goal contribution added",
        extra={"user_id": user_id, "goal_id": goal_id, "status": goal.status.value},
    )
    return success_response(
        data={"goal": goal.to_response(utc_today())},
        message=f"Added {contribution.amount} to '{goal.name}'",
    )
