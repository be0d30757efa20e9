"""
Profile and preference handlers.

The ``profiles`` row is keyed by the auth user id. Users created before
the row existed get one on first read, filled from their sign-up metadata.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import ValidationError

from models.profile import Profile, ProfileUpdate
from services.forms import pydantic_errors
from services.preferences import Preferences
from services.state_store import get_state_store
from services.supabase_client import SupabaseClient, get_client
from utils.decorators import lambda_handler, require_auth, validate_json_body
from utils.logging import setup_logger
from utils.responses import (not_found_response, success_response,
                             validation_error_response)

logger = setup_logger(__name__)


def ensure_profile(client: SupabaseClient, auth: Dict[str, Any]) -> Profile:
    """Read the caller's profile, creating it when missing."""
    user_id = auth["user_id"]
    rows = client.table("profiles").select("*").eq("id", user_id).execute()
    if rows:
        return Profile.from_record(rows[0])

    user = client.get_user(auth["access_token"]) or {}
    profile = Profile.default_for(
        user_id, user.get("email") or auth.get("email"), user.get("user_metadata")
    )
    rows = (
        client.table("profiles")
        .insert(
            {
                "id": profile.id,
                "full_name": profile.full_name,
                "country_code": profile.country_code,
            }
        )
        .execute()
    )
    logger.info("Profile created", extra={"user_id": user_id})
    return Profile.from_record(rows[0]) if rows else profile


@lambda_handler()
@require_auth
def get_profile(event, context):
    """
    Get the caller's profile.

    GET /profile
    """
    client = get_client(event["auth"]["access_token"])
    profile = ensure_profile(client, event["auth"])
    return success_response(data={"profile": profile})


@lambda_handler()
@require_auth
@validate_json_body()
def update_profile(event, context):
    """
    Change the display name or country.

    PUT /profile
    """
    user_id = event["auth"]["user_id"]
    try:
        update = ProfileUpdate(**event["json_body"])
    except ValidationError as e:
        return validation_error_response(
            "Profile validation failed", {"errors": pydantic_errors(e)}
        )

    payload = update.to_payload()
    if not payload:
        return validation_error_response("Nothing to update")

    client = get_client(event["auth"]["access_token"])
    rows = client.table("profiles").update(payload).eq("id", user_id).execute()
    if not rows:
        return not_found_response("Profile", user_id)

    return success_response(
        data={"profile": Profile.from_record(rows[0])}, message="Profile updated"
    )


@lambda_handler()
@require_auth
def mark_welcome_seen(event, context):
    """
    Record that the welcome screen was shown.

    POST /profile/welcome
    """
    user_id = event["auth"]["user_id"]
    client = get_client(event["auth"]["access_token"])
    rows = (
        client.table("profiles")
        .update(
            {
                "has_seen_welcome": True,
                "welcome_seen_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        .eq("id", user_id)
        .execute()
    )
    if not rows:
        return not_found_response("Profile", user_id)

    return success_response(data={"profile": Profile.from_record(rows[0])})


@lambda_handler()
@require_auth
def get_preferences(event, context):
    """
    GET /profile/preferences
    """
    preferences = Preferences(get_state_store(), event["auth"]["user_id"])
    return success_response(data={"dark_mode": preferences.dark_mode()})


@lambda_handler()
@require_auth
@validate_json_body()
def update_preferences(event, context):
    """
    Set or toggle dark mode.

    PUT /profile/preferences with ``{"dark_mode": true}``; an empty body
    toggles the current value.
    """
    body = event["json_body"]
    preferences = Preferences(get_state_store(), event["auth"]["user_id"])
    if "dark_mode" in body:
        if not isinstance(body["dark_mode"], bool):
            return validation_error_response(
                "dark_mode must be true or false",
                {"errors": {"dark_mode": "Must be a boolean"}},
            )
        dark_mode = preferences.set_dark_mode(body["dark_mode"])
    else:
        dark_mode = preferences.toggle_dark_mode()
    return success_response(data={"dark_mode": dark_mode})
