"""
Centralized logging configuration for the MoniFly API.

Every Lambda handler and service logs through ``setup_logger`` so that
CloudWatch receives one JSON document per line. Values attached through
``extra=`` are copied into the document, with credentials redacted.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
    }
)

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "confirm_password",
        "access_token",
        "refresh_token",
        "authorization",
        "apikey",
        "code_verifier",
    }
)

REDACTED = "***"


def redact(value: Any) -> Any:
    """Return a copy of ``value`` with sensitive keys masked, recursively."""
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


class StructuredFormatter(logging.Formatter):
    """
    Formatter that emits structured JSON logs for CloudWatch Insights queries.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            log_entry[key] = REDACTED if key.lower() in SENSITIVE_KEYS else redact(value)

        return json.dumps(log_entry, default=str)


def setup_logger(
    name: str, level: str = "INFO", structured: bool = True
) -> logging.Logger:
    """
    Set up a logger with consistent configuration.

    Args:
        name: Logger name (typically __name__)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: Whether to use structured JSON logging

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers on warm starts
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level.upper()))

    handler = logging.StreamHandler(sys.stdout)
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def _http_method(event: Dict[str, Any]) -> Optional[str]:
    return event.get("httpMethod") or event.get("requestContext", {}).get(
        "http", {}
    ).get("method")


def log_lambda_event(
    logger: logging.Logger, event: Dict[str, Any], context: Any
) -> None:
    """
    Log the incoming API Gateway event without its body or credentials.

    Args:
        logger: Logger instance
        event: Lambda event
        context: Lambda context
    """
    headers = event.get("headers") or {}
    logger.info(
        "Lambda invocation started",
        extra={
            "request_id": getattr(context, "aws_request_id", "unknown"),
            "function_name": getattr(context, "function_name", "unknown"),
            "http_method": _http_method(event),
            "path": event.get("path") or event.get("rawPath"),
            "path_parameters": event.get("pathParameters"),
            "user_agent": headers.get("user-agent"),
            "client_id": headers.get("x-client-id"),
            "source_ip": event.get("requestContext", {})
            .get("http", {})
            .get("sourceIp"),
        },
    )


def log_lambda_response(
    logger: logging.Logger,
    response: Dict[str, Any],
    execution_time_ms: Optional[float] = None,
) -> None:
    """
    Log Lambda response details.

    Args:
        logger: Logger instance
        response: Lambda response
        execution_time_ms: Execution time in milliseconds
    """
    logger.info(
        "Lambda invocation completed",
        extra={
            "status_code": response.get("statusCode"),
            "execution_time_ms": execution_time_ms,
            "response_size": len(str(response.get("body", ""))),
        },
    )


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log errors with additional context.

    Args:
        logger: Logger instance
        error: Exception that occurred
        context: Additional context information
    """
    extra = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }

    if context:
        extra.update(context)

    logger.error(f"Error occurred: {str(error)}", extra=extra, exc_info=True)
