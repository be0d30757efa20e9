"""
Decorators for Lambda function handlers.

This module provides decorators that add consistent logging, error handling,
and response formatting to Lambda functions.
"""

import json
import time
from functools import wraps
from typing import Any, Callable, Dict, Optional

from services.errors import BackendError, ConfigurationError
from services.wizard import WizardValidationError

from .logging import (log_error, log_lambda_event, log_lambda_response,
                      setup_logger)
from .responses import (HTTPStatus, backend_error_response, error_response,
                        validation_error_response)
from .security import extract_token_from_header


def lambda_handler(
    logger_name: Optional[str] = None,
    log_event: bool = True,
    log_response: bool = True,
    structured_logging: bool = True,
) -> Callable:
    """
    Decorator for Lambda function handlers that provides:
    - Consistent logging setup
    - Automatic event/response logging
    - Error handling and response formatting
    - Typed backend and validation failures mapped to 4xx/5xx responses
    - Execution time tracking

    Args:
        logger_name: Logger name (defaults to function module name)
        log_event: Whether to log incoming events
        log_response: Whether to log responses
        structured_logging: Whether to use structured JSON logging

    Returns:
        Decorated function
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
            # Set up logger
            logger = setup_logger(
                logger_name or func.__module__, structured=structured_logging
            )

            start_time = time.time()

            try:
                # Log incoming event
                if log_event:
                    log_lambda_event(logger, event, context)

                # Call the actual handler
                response = func(event, context)

                # Ensure response is properly formatted
                if not isinstance(response, dict) or "statusCode" not in response:
                    logger.warning("Handler returned invalid response format")
                    response = error_response(
                        "Internal server error", HTTPStatus.INTERNAL_SERVER_ERROR
                    )

                # Log response
                if log_response:
                    execution_time = (time.time() - start_time) * 1000
                    log_lambda_response(logger, response, execution_time)

                return response

            except WizardValidationError as e:
                logger.info(
                    "Request failed validation", extra={"invalid_fields": sorted(e.errors)}
                )
                details = {"errors": e.errors}
                if e.step_index is not None:
                    details["step_index"] = e.step_index
                return validation_error_response("Validation failed", details)

            except BackendError as e:
                logger.warning(
                    "Backend request failed",
                    extra={
                        "error_kind": e.kind.value,
                        "error_code": e.code,
                        "status_code": e.status_code,
                    },
                )
                return backend_error_response(e)

            except ConfigurationError as e:
                log_error(
                    logger,
                    e,
                    {"function_name": getattr(context, "function_name", "unknown")},
                )
                return error_response(
                    "Service is not configured", HTTPStatus.INTERNAL_SERVER_ERROR
                )

            except Exception as e:
                execution_time = (time.time() - start_time) * 1000

                # Log the error with context
                log_error(
                    logger,
                    e,
                    {
                        "function_name": getattr(context, "function_name", "unknown"),
                        "request_id": getattr(context, "aws_request_id", "unknown"),
                        "execution_time_ms": execution_time,
                        "event_path": event.get("path") or event.get("rawPath"),
                        "event_method": event.get("httpMethod")
                        or event.get("requestContext", {})
                        .get("http", {})
                        .get("method"),
                    },
                )

                # Return standardized error response
                return error_response(
                    "Internal server error", HTTPStatus.INTERNAL_SERVER_ERROR
                )

        return wrapper

    return decorator


def get_client_id(event: Dict[str, Any]) -> str:
    """
    Identify the calling client (browser) for per-client state.

    Uses the ``X-Client-Id`` header the web client sends, falling back to the
    source IP address.
    """
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    client_id = headers.get("x-client-id")
    if client_id:
        return client_id
    request_context = event.get("requestContext", {})
    source_ip = request_context.get("http", {}).get("sourceIp") or request_context.get(
        "identity", {}
    ).get("sourceIp")
    return source_ip or "anonymous"


def require_auth(func: Callable) -> Callable:
    """
    Decorator that ensures the request is authenticated.

    This decorator checks for authorization context that should be
    set by the API Gateway authorizer, and keeps the caller's bearer
    token so Supabase calls run under the caller's identity.

    Args:
        func: Function to decorate

    Returns:
        Decorated function
    """

    @wraps(func)
    def wrapper(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
        # For HTTP API Gateway, context is in requestContext.authorizer.lambda
        request_context = event.get("requestContext", {})
        authorizer_context = request_context.get("authorizer", {})

        # Try both REST API and HTTP API formats
        auth_context = authorizer_context.get("lambda", authorizer_context)

        headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
        access_token = extract_token_from_header(headers.get("authorization"))

        if not auth_context or not auth_context.get("user_id") or not access_token:
            logger = setup_logger(__name__)
            logger.info(
                "Authorization failed - no valid context found",
                extra={
                    "request_context_keys": list(request_context.keys()),
                    "authorizer_keys": list(authorizer_context.keys()),
                    "has_token": bool(access_token),
                },
            )
            return error_response("Unauthorized access", HTTPStatus.UNAUTHORIZED)

        # Add auth info to event for easy access in handlers
        event["auth"] = {
            "user_id": auth_context.get("user_id"),
            "email": auth_context.get("email"),
            "access_token": access_token,
        }

        return func(event, context)

    return wrapper


def validate_json_body(required_fields: Optional[list] = None) -> Callable:
    """
    Decorator that validates and parses JSON request body.

    Args:
        required_fields: List of required field names

    Returns:
        Decorated function
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
            try:
                # Parse JSON body
                body_str = event.get("body", "{}")
                if not body_str:
                    body_str = "{}"

                body = json.loads(body_str)
                if not isinstance(body, dict):
                    return validation_error_response("Request body must be a JSON object")
                event["json_body"] = body

                # Validate required fields
                if required_fields:
                    missing_fields = [
                        field
                        for field in required_fields
                        if field not in body or body[field] is None
                    ]

                    if missing_fields:
                        return validation_error_response(
                            f"Missing required fields: {', '.join(missing_fields)}",
                            {"missing_fields": missing_fields},
                        )

                return func(event, context)

            except json.JSONDecodeError as e:
                return validation_error_response(
                    "Invalid JSON in request body", {"json_error": str(e)}
                )

        return wrapper

    return decorator


def extract_path_params(*param_names: str) -> Callable:
    """
    Decorator that extracts and validates path parameters.

    Args:
        param_names: Names of path parameters to extract

    Returns:
        Decorated function
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
            path_params = event.get("pathParameters") or {}

            # Check for missing parameters
            missing_params = [
                param
                for param in param_names
                if param not in path_params or not path_params[param]
            ]

            if missing_params:
                return validation_error_response(
                    f"Missing path parameters: {', '.join(missing_params)}",
                    {"missing_parameters": missing_params},
                )

            # Add extracted params to event for easy access
            event["path_params"] = {param: path_params[param] for param in param_names}

            return func(event, context)

        return wrapper

    return decorator
