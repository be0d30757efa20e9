"""
Utils package for shared utilities and cross-cutting concerns.

This package contains decorators, logging utilities, response formatters,
and the input checks run before calls to Supabase Auth.
"""

from .decorators import (extract_path_params, get_client_id, lambda_handler,
                         require_auth, validate_json_body)
from .logging import (log_error, log_lambda_event, log_lambda_response,
                      setup_logger)
from .responses import (HTTPStatus, backend_error_response, error_response,
                        not_found_response, rate_limited_response,
                        success_response, validation_error_response)
from .security import (email_error, filled_too_fast, honeypot_filled,
                       sanitize_error)

__all__ = [
    # Decorators
    "lambda_handler",
    "require_auth",
    "validate_json_body",
    "extract_path_params",
    "get_client_id",
    # Logging
    "setup_logger",
    "log_lambda_event",
    "log_lambda_response",
    "log_error",
    # Responses
    "HTTPStatus",
    "success_response",
    "error_response",
    "validation_error_response",
    "not_found_response",
    "backend_error_response",
    "rate_limited_response",
    # Security
    "email_error",
    "filled_too_fast",
    "honeypot_filled",
    "sanitize_error",
]
