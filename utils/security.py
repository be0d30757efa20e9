"""
Input checks for the auth forms.

This module provides the best-effort checks run before a credential
request reaches Supabase Auth: email and password rules, the form-timing
and honeypot bot gates, short-lived form tokens, and scrubbing of error
text before it is shown to the user.

None of this is a security boundary. Supabase Auth enforces the real rules.
"""

import math
import re
import time
from typing import Any, Dict, Optional

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")

LOGIN_PASSWORD_MIN_LENGTH = 6
REGISTRATION_PASSWORD_MIN_LENGTH = 8

# Forms submitted faster than this are treated as automated
MIN_FORM_FILL_SECONDS = 2.0

HONEYPOT_FIELD = "website"

FORM_TOKEN_MAX_AGE_SECONDS = 60 * 60

SENSITIVE_ERROR_WORDS = (
    "database",
    "sql",
    "connection",
    "server",
    "internal",
    "stack",
    "trace",
    "debug",
    "dev",
    "localhost",
)

_SENSITIVE_ERROR_PATTERN = re.compile(
    "|".join(SENSITIVE_ERROR_WORDS), flags=re.IGNORECASE
)


def email_error(value: Any) -> Optional[str]:
    """Error message for a malformed email address, or None."""
    if not value or not EMAIL_PATTERN.match(str(value).strip()):
        return "Enter a valid email address"
    return None


def login_password_error(value: Any) -> Optional[str]:
    if not value or len(str(value)) < LOGIN_PASSWORD_MIN_LENGTH:
        return f"Password must be at least {LOGIN_PASSWORD_MIN_LENGTH} characters"
    return None


def registration_password_error(value: Any) -> Optional[str]:
    """
    Registration passwords need 8+ characters with a lowercase letter,
    an uppercase letter and a digit.
    """
    password = "" if value is None else str(value)
    if len(password) < REGISTRATION_PASSWORD_MIN_LENGTH:
        return (
            f"Password must be at least {REGISTRATION_PASSWORD_MIN_LENGTH} characters"
        )
    if not re.search(r"[a-z]", password):
        return "Password must contain a lowercase letter"
    if not re.search(r"[A-Z]", password):
        return "Password must contain an uppercase letter"
    if not re.search(r"\d", password):
        return "Password must contain a number"
    return None


def _as_seconds(timestamp: float) -> float:
    # Browsers send Date.now() in milliseconds
    return timestamp / 1000 if timestamp > 1e11 else timestamp


def filled_too_fast(
    form_started_at: Any,
    now: Optional[float] = None,
    minimum_seconds: float = MIN_FORM_FILL_SECONDS,
) -> bool:
    """
    True when the form was submitted less than ``minimum_seconds`` after the
    user first focused it. A missing or unreadable start time counts as
    "just now", so the submission is flagged.
    """
    if form_started_at in (None, ""):
        return True
    try:
        started = _as_seconds(float(form_started_at))
    except (TypeError, ValueError):
        return True
    if not math.isfinite(started):
        return True
    now = time.time() if now is None else now
    return now - started < minimum_seconds


def honeypot_filled(body: Dict[str, Any], field: str = HONEYPOT_FIELD) -> bool:
    """True when the hidden field that humans never see has a value."""
    value = body.get(field)
    return value is not None and str(value).strip() != ""


def sanitize_error(message: Optional[str]) -> str:
    """Mask words that hint at backend internals."""
    if not message:
        return "An unexpected error occurred"
    return _SENSITIVE_ERROR_PATTERN.sub("[FILTERED]", str(message))


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    result = ""
    while number:
        number, remainder = divmod(number, 36)
        result = digits[remainder] + result
    return result


def generate_form_token(now: Optional[float] = None) -> str:
    """Token encoding the issue time (base-36 milliseconds)."""
    now = time.time() if now is None else now
    return _base36(int(now * 1000))


def form_token_age(token: Optional[str], now: Optional[float] = None) -> Optional[float]:
    """Seconds since ``token`` was issued, or None when it is not a token."""
    if not token:
        return None
    try:
        issued_ms = int(str(token), 36)
    except ValueError:
        return None
    now = time.time() if now is None else now
    return now - issued_ms / 1000


def validate_form_token(
    token: Optional[str],
    now: Optional[float] = None,
    min_age_seconds: float = MIN_FORM_FILL_SECONDS,
    max_age_seconds: float = FORM_TOKEN_MAX_AGE_SECONDS,
) -> bool:
    """
    True for a token issued between ``min_age_seconds`` and
    ``max_age_seconds`` ago.
    """
    age = form_token_age(token, now)
    if age is None:
        return False
    return min_age_seconds <= age < max_age_seconds


def extract_token_from_header(authorization_header: Optional[str]) -> Optional[str]:
    """
    Extract the JWT from an ``Authorization: Bearer <token>`` header.

    Returns:
        The token if the header is well formed, None otherwise
    """
    if not authorization_header:
        return None

    parts = authorization_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]
