"""
Health check endpoint for the MoniFly API.
"""

from services.errors import ConfigurationError
from services.parameter_store import get_app_config
from utils.decorators import lambda_handler
from utils.logging import setup_logger
from utils.responses import HTTPStatus, success_response

logger = setup_logger(__name__)

SERVICE_NAME = "monifly-api"
SERVICE_VERSION = "1.0.0"


@lambda_handler()
def healthz(event, context):
    """
    GET /healthz

    Reports ``healthy`` when the Supabase settings resolve and ``degraded``
    (503) when they do not. No request is made to Supabase itself.
    """
    try:
        app_config = get_app_config()
    except ConfigurationError as e:
        logger.warning("Health check: configuration missing", extra={"error": str(e)})
        return success_response(
            data={
                "status": "degraded",
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "checks": {"config": str(e)},
            },
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
        )

    return success_response(
        data={
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "checks": {
                "config": "ok",
                "state_backend": "dynamodb" if app_config.state_table_name else "file",
            },
        },
    )
