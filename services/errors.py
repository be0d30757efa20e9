"""
Typed failures raised at the Supabase boundary.

Supabase Auth (GoTrue) and the data API (PostgREST) both return structured
error bodies. They are classified here by HTTP status and error code into a
closed set of kinds, so callers branch on ``error.kind`` and never on the
wording of a message.
"""

import re
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    AUTH = "auth"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_EXISTS = "email_exists"
    WEAK_PASSWORD = "weak_password"
    INVALID_EMAIL = "invalid_email"
    RATE_LIMITED = "rate_limited"
    PERMISSION_DENIED = "permission_denied"
    CONSTRAINT_VIOLATION = "constraint_violation"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    NETWORK = "network"
    UNKNOWN = "unknown"


class ConfigurationError(RuntimeError):
    """Raised at startup when mandatory settings are missing."""


class BackendError(Exception):
    """A failed call to the hosted platform."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        field: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.code = code
        self.field = field

    def __repr__(self) -> str:
        return (
            f"BackendError(kind={self.kind.value!r}, code={self.code!r}, "
            f"status_code={self.status_code!r}, field={self.field!r})"
        )


# GoTrue ``error_code`` values (and legacy ``error`` values)
_AUTH_CODES = {
    "invalid_credentials": ErrorKind.INVALID_CREDENTIALS,
    "invalid_grant": ErrorKind.INVALID_CREDENTIALS,
    "user_already_exists": ErrorKind.EMAIL_EXISTS,
    "email_exists": ErrorKind.EMAIL_EXISTS,
    "weak_password": ErrorKind.WEAK_PASSWORD,
    "email_address_invalid": ErrorKind.INVALID_EMAIL,
    "validation_failed": ErrorKind.INVALID_EMAIL,
    "over_request_rate_limit": ErrorKind.RATE_LIMITED,
    "over_email_send_rate_limit": ErrorKind.RATE_LIMITED,
    "bad_jwt": ErrorKind.AUTH,
    "session_not_found": ErrorKind.AUTH,
    "session_expired": ErrorKind.AUTH,
    "no_authorization": ErrorKind.AUTH,
    "flow_state_not_found": ErrorKind.AUTH,
    "flow_state_expired": ErrorKind.AUTH,
    "bad_code_verifier": ErrorKind.AUTH,
    "user_not_found": ErrorKind.NOT_FOUND,
}

# PostgREST / PostgreSQL SQLSTATE codes
_DATA_CODES = {
    "23514": ErrorKind.CONSTRAINT_VIOLATION,
    "23502": ErrorKind.CONSTRAINT_VIOLATION,
    "22P02": ErrorKind.CONSTRAINT_VIOLATION,
    "23503": ErrorKind.CONSTRAINT_VIOLATION,
    "23505": ErrorKind.DUPLICATE,
    "42501": ErrorKind.PERMISSION_DENIED,
    "PGRST116": ErrorKind.NOT_FOUND,
    "PGRST301": ErrorKind.AUTH,
    "PGRST302": ErrorKind.AUTH,
}

_STATUS_KINDS = {
    401: ErrorKind.AUTH,
    403: ErrorKind.PERMISSION_DENIED,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.DUPLICATE,
    422: ErrorKind.CONSTRAINT_VIOLATION,
    429: ErrorKind.RATE_LIMITED,
}

_CONSTRAINT_NAME = re.compile(r'constraint "(?P<name>[^"]+)"')
_NOT_NULL_COLUMN = re.compile(r'column "(?P<name>[^"]+)"')


def constraint_field(table: Optional[str], detail: str) -> Optional[str]:
    """
    Derive the offending column from a PostgreSQL constraint name.

    ``debts_payment_type_check`` on table ``debts`` gives ``payment_type``.
    """
    match = _CONSTRAINT_NAME.search(detail or "")
    if not match:
        column = _NOT_NULL_COLUMN.search(detail or "")
        return column.group("name") if column else None

    name = match.group("name")
    if table and name.startswith(f"{table}_"):
        name = name[len(table) + 1 :]
    for suffix in ("_check", "_key", "_fkey"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    return name or None


def classify_auth_error(status_code: int, payload: Dict[str, Any]) -> BackendError:
    """Build a BackendError from a GoTrue error body."""
    code = payload.get("error_code") or payload.get("error")
    message = (
        payload.get("msg")
        or payload.get("error_description")
        or payload.get("message")
        or f"Auth request failed with status {status_code}"
    )

    kind = _AUTH_CODES.get(code) if code else None
    if kind is None:
        kind = _STATUS_KINDS.get(status_code, ErrorKind.UNKNOWN)
    return BackendError(kind, message, status_code=status_code, code=code)


def classify_data_error(
    status_code: int, payload: Dict[str, Any], table: Optional[str] = None
) -> BackendError:
    """Build a BackendError from a PostgREST error body."""
    code = payload.get("code")
    message = payload.get("message") or f"Request failed with status {status_code}"

    kind = _DATA_CODES.get(code) if code else None
    if kind is None:
        kind = _STATUS_KINDS.get(status_code, ErrorKind.UNKNOWN)

    field = None
    if kind in (ErrorKind.CONSTRAINT_VIOLATION, ErrorKind.DUPLICATE):
        field = constraint_field(table, message)
    return BackendError(
        kind, message, status_code=status_code, code=code, field=field
    )
