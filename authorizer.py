"""
Request authorizer for the MoniFly HTTP API.

Every protected route runs this first. A valid Supabase access token lets
the request through with the user's id, email and display name in the
authorizer context; anything else is denied. Data ownership is not checked
here: handlers forward the same token to Supabase, where row-level
security applies.
"""

from typing import Any, Dict

from services.supabase_auth import supabase_auth
from utils.logging import log_error, setup_logger

logger = setup_logger(__name__)

DENY = {"isAuthorized": False}


def build_context(user_info: Dict[str, Any]) -> Dict[str, str]:
    """Authorizer context values must be strings."""
    metadata = user_info.get("user_metadata") or {}
    return {
        "principalId": user_info["user_id"],
        "user_id": user_info["user_id"],
        "email": user_info.get("email") or "",
        "full_name": str(metadata.get("full_name") or ""),
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    HTTP API simple-response authorizer.

    Args:
        event: API Gateway authorizer event (payload v2)
        context: Lambda context object

    Returns:
        ``{"isAuthorized": bool}`` plus the caller's context when allowed
    """
    http = event.get("requestContext", {}).get("http", {})
    request = {
        "request_id": getattr(context, "aws_request_id", "unknown"),
        "method": http.get("method"),
        "path": event.get("rawPath"),
    }

    try:
        user_info = supabase_auth.get_user_from_request(event)
    except Exception as e:
        log_error(logger, e, request)
        return DENY

    if not user_info or not user_info.get("user_id"):
        logger.warning("Request denied: no valid Supabase session", extra=request)
        return DENY

    logger.info(
        "Request authorized", extra={**request, "user_id": user_info["user_id"]}
    )
    return {"isAuthorized": True, "context": build_context(user_info)}
