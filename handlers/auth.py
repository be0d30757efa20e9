"""
Authentication handlers for the MoniFly API.

These endpoints stand in front of Supabase Auth for the login, registration
and password-recovery screens. Each one runs the client-side checks first
(format rules, form timing, honeypot, attempt limiter) and only then calls
Supabase. The attempt limiter is a UX nicety: Supabase applies the real
rate limits on its side.
"""

import json
from typing import Any, Dict, Optional

from models.profile import DEFAULT_COUNTRY
from services.errors import BackendError, ErrorKind
from services.forms import REGISTRATION_FORM
from services.parameter_store import get_app_config
from services.rate_limiter import (AttemptLimiter, ExponentialBackoff,
                                   FlatBackoff)
from services.routing import resolve
from services.session import AuthEvent, Session, SessionManager, redirect_for
from services.state_store import get_state_store
from services.supabase_auth import supabase_auth, token_from_event
from services.supabase_client import get_client
from utils.decorators import get_client_id, lambda_handler, validate_json_body
from utils.logging import setup_logger
from utils.responses import (HTTPStatus, backend_error_response,
                             rate_limited_response, success_response,
                             unauthorized_response, validation_error_response)
from utils.security import (email_error, filled_too_fast,
                            generate_form_token, honeypot_filled,
                            login_password_error, validate_form_token)

logger = setup_logger(__name__)

LOGIN_KEY = "login"
REGISTER_KEY = "register"
RESET_KEY = "reset"

REGISTER_BLOCK_SECONDS = 10 * 60
RESET_BLOCK_SECONDS = 15 * 60

UPDATE_PASSWORD_MIN_LENGTH = 6


def login_limiter(client_id: str) -> AttemptLimiter:
    return AttemptLimiter(get_state_store(), client_id, backoff=ExponentialBackoff())


def register_limiter(client_id: str) -> AttemptLimiter:
    return AttemptLimiter(
        get_state_store(), client_id, backoff=FlatBackoff(REGISTER_BLOCK_SECONDS)
    )


def reset_limiter(client_id: str) -> AttemptLimiter:
    return AttemptLimiter(
        get_state_store(), client_id, backoff=FlatBackoff(RESET_BLOCK_SECONDS)
    )


def _origin(event: Dict[str, Any]) -> Optional[str]:
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    return headers.get("origin")


def _bot_check(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Validation response when the submission looks automated, else None."""
    if honeypot_filled(body):
        logger.warning("Honeypot field filled, rejecting submission")
        return validation_error_response("Invalid request")
    # Timing comes from the issued form token, else the client's focus time.
    # Neither one present counts as an instant submission.
    token = body.get("form_token")
    if token:
        if not validate_form_token(token, min_age_seconds=0):
            return validation_error_response(
                "The form has expired, reload the page and try again",
                {"form_token": "Invalid or expired form token"},
            )
        if not validate_form_token(token):
            return _too_fast("form_token")
        return None
    if filled_too_fast(body.get("form_started_at")):
        return _too_fast("form_started_at")
    return None


def _too_fast(field: str) -> Dict[str, Any]:
    return validation_error_response(
        "Please take a moment to fill in the form",
        {field: "Form submitted too quickly"},
    )


@lambda_handler()
def form_token(event, context):
    """
    Issue a short-lived form token.

    GET /auth/form-token
    """
    return success_response(data={"form_token": generate_form_token()})


@lambda_handler()
@validate_json_body(required_fields=["email", "password"])
def sign_in(event, context):
    """
    Sign in with email and password.

    POST /auth/login

    Failed attempts are counted per client; after three failures the client
    is blocked for 60 s, doubling with every further failure.

    Returns:
        HTTP response with the session and the redirect to follow
    """
    body = event["json_body"]
    email = str(body["email"]).strip()
    password = str(body["password"])

    rejected = _bot_check(body)
    if rejected:
        return rejected

    limiter = login_limiter(get_client_id(event))
    status = limiter.status(LOGIN_KEY)
    if status.blocked:
        return rate_limited_response(status.retry_after, status.message)

    errors = {}
    for field, message in (
        ("email", email_error(email)),
        ("password", login_password_error(password)),
    ):
        if message:
            errors[field] = message
    if errors:
        return validation_error_response("Validation failed", {"errors": errors})

    client = get_client()
    try:
        payload = client.sign_in_with_password(email, password)
    except BackendError as e:
        if e.kind == ErrorKind.NETWORK:
            raise
        status = limiter.record_failure(LOGIN_KEY)
        if status.blocked:
            return rate_limited_response(status.retry_after, status.message)
        response = backend_error_response(e)
        return _with_attempts_remaining(response, status.attempts_remaining)

    limiter.record_success(LOGIN_KEY)
    manager = SessionManager(client)
    session = Session.from_auth_response(payload)
    redirect = manager.signed_in(session, body.get("current_path") or "/login")

    logger.info("User signed in", extra={"user_id": session.user_id})
    return success_response(
        data={"session": session.to_response(), "redirect": redirect},
        message="Signed in",
    )


def _with_attempts_remaining(response: Dict[str, Any], remaining: int) -> Dict[str, Any]:
    body = json.loads(response["body"])
    body.setdefault("details", {})["attempts_remaining"] = remaining
    response["body"] = json.dumps(body)
    return response


@lambda_handler()
@validate_json_body(required_fields=["email", "password"])
def sign_up(event, context):
    """
    Register a new account.

    POST /auth/register

    The name and country are stored as user metadata; the profile row is
    created from them on first dashboard load. After three failed attempts
    the client is blocked for 10 minutes. "Email already registered"
    answers do not count as failures.
    """
    body = event["json_body"]

    rejected = _bot_check(body)
    if rejected:
        return rejected

    limiter = register_limiter(get_client_id(event))
    status = limiter.status(REGISTER_KEY)
    if status.blocked:
        return rate_limited_response(status.retry_after, status.message)

    country = body.get("country") or body.get("country_code") or DEFAULT_COUNTRY
    wizard = REGISTRATION_FORM.start()
    wizard.update(
        {
            "name": str(body.get("name") or body.get("full_name") or "").strip(),
            "email": str(body["email"]).strip(),
            "password": str(body["password"]),
            "country": country,
        }
    )
    errors = wizard.errors()
    if errors:
        return validation_error_response("Validation failed", {"errors": errors})

    data = wizard.form_data
    redirect_to = get_app_config().email_redirect("/update-password", _origin(event))
    client = get_client()
    try:
        payload = client.sign_up(
            data["email"],
            data["password"],
            data={"full_name": data["name"], "country_code": data["country"]},
            redirect_to=redirect_to,
        )
    except BackendError as e:
        if e.kind in (ErrorKind.EMAIL_EXISTS, ErrorKind.NETWORK):
            raise
        status = limiter.record_failure(REGISTER_KEY)
        if status.blocked:
            return rate_limited_response(status.retry_after, status.message)
        raise

    limiter.record_success(REGISTER_KEY)

    payload = payload or {}
    user = payload.get("user") or payload
    response_data = {
        "user": {"id": user.get("id"), "email": user.get("email")},
        "confirmation_required": not payload.get("access_token"),
    }
    if payload.get("access_token"):
        response_data["session"] = Session.from_auth_response(payload).to_response()

    logger.info("User registered", extra={"user_id": user.get("id")})
    return success_response(
        data=response_data,
        message="Account created. Check your email to confirm it.",
        status_code=HTTPStatus.CREATED,
    )


@lambda_handler()
@validate_json_body(required_fields=["email"])
def request_password_reset(event, context):
    """
    Send a password recovery email.

    POST /auth/forgot-password

    Every request counts toward the limit; the third one blocks the client
    for 15 minutes.
    """
    body = event["json_body"]
    email = str(body["email"]).strip()

    if honeypot_filled(body):
        logger.warning("Honeypot field filled, rejecting submission")
        return validation_error_response("Invalid request")

    limiter = reset_limiter(get_client_id(event))
    status = limiter.status(RESET_KEY)
    if status.blocked:
        return rate_limited_response(status.retry_after, status.message)

    message = email_error(email)
    if message:
        return validation_error_response(
            "Validation failed", {"errors": {"email": message}}
        )

    limiter.record_failure(RESET_KEY)

    redirect_to = get_app_config().email_redirect("/update-password", _origin(event))
    get_client().reset_password_for_email(email, redirect_to=redirect_to)

    return success_response(
        message="If an account exists for this email, a recovery link has been sent."
    )


@lambda_handler()
@validate_json_body(required_fields=["password", "confirm_password"])
def update_password(event, context):
    """
    Set a new password from the recovery flow.

    POST /auth/update-password

    Accepts either the ``code`` from the recovery link, which is exchanged
    for a session first, or a bearer token of an existing recovery session.
    """
    body = event["json_body"]
    password = str(body["password"])

    if password != str(body["confirm_password"]):
        return validation_error_response(
            "Validation failed", {"errors": {"confirm_password": "Passwords do not match"}}
        )
    if len(password) < UPDATE_PASSWORD_MIN_LENGTH:
        message = f"Password must be at least {UPDATE_PASSWORD_MIN_LENGTH} characters"
        return validation_error_response(
            "Validation failed", {"errors": {"password": message}}
        )

    client = get_client()
    manager = SessionManager(client)
    redirect = None
    if body.get("code"):
        payload = client.exchange_code_for_session(body["code"], body.get("code_verifier"))
        redirect = manager.password_recovery(Session.from_auth_response(payload))
        access_token = manager.session.access_token
    else:
        access_token = token_from_event(event)
        if not access_token:
            return unauthorized_response("The recovery link is invalid or has expired")

    user = client.update_user({"password": password}, access_token=access_token)
    manager.user_updated(user or {})

    logger.info("Password updated", extra={"user_id": (user or {}).get("id")})
    data = {"redirect": "/", "recovery_redirect": redirect}
    if manager.session is not None:
        data["session"] = manager.session.to_response()
    return success_response(data=data, message="Password updated")


@lambda_handler()
def sign_out(event, context):
    """
    End the caller's session.

    POST /auth/logout
    """
    access_token = token_from_event(event)
    if not access_token:
        return unauthorized_response()

    get_client().sign_out(access_token)
    return success_response(
        data={"redirect": redirect_for(AuthEvent.SIGNED_OUT)}, message="Signed out"
    )


@lambda_handler()
@validate_json_body(required_fields=["refresh_token"])
def refresh_session(event, context):
    """
    Exchange a refresh token for a new session.

    POST /auth/refresh
    """
    body = event["json_body"]
    manager = SessionManager(
        get_client(),
        session=Session(access_token="", refresh_token=body["refresh_token"]),
    )
    session = manager.refresh()
    return success_response(data={"session": session.to_response()})


@lambda_handler()
def resolve_route(event, context):
    """
    Decide what the web client shows for a path.

    GET /routes/resolve?path=/analytics
    """
    params = event.get("queryStringParameters") or {}
    path = params.get("path") or "/"
    has_session = False
    if token_from_event(event):
        has_session = supabase_auth.get_user_from_request(event) is not None

    decision = resolve(path, has_session)
    return success_response(data=decision.model_dump())
