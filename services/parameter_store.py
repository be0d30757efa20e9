"""
Configuration for the MoniFly API.

Values come from environment variables first (a ``.env`` file is loaded
for local development) and then from AWS Systems Manager Parameter Store
under the ``/monifly`` prefix. The Supabase endpoint and anon key are
mandatory; ``get_app_config`` fails fast when either is missing.
"""

import os
from functools import lru_cache
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from services.errors import ConfigurationError
from utils.logging import setup_logger

logger = setup_logger(__name__)

load_dotenv()

PARAMETER_PREFIX = "/monifly"

# Keys under PARAMETER_PREFIX the API reads
PARAMETER_KEYS = (
    "supabase-url",
    "supabase-anon-key",
    "supabase-jwt-secret",
    "site-url",
    "state-table-name",
    "state-file",
    "supabase-timeout",
)
REQUIRED_KEYS = ("supabase-url", "supabase-anon-key")
SECURE_KEYS = ("supabase-anon-key", "supabase-jwt-secret")

_ssm_client = None


def get_ssm_client():
    """Get or create SSM client with caching."""
    global _ssm_client
    if _ssm_client is None:
        _ssm_client = boto3.client("ssm")
    return _ssm_client


def env_name(parameter_name: str) -> str:
    """``/monifly/supabase-url`` -> ``SUPABASE_URL``."""
    key = parameter_name
    if key.startswith(PARAMETER_PREFIX + "/"):
        key = key[len(PARAMETER_PREFIX) + 1 :]
    return key.strip("/").replace("/", "_").replace("-", "_").upper()


@lru_cache(maxsize=128)
def get_parameter(parameter_name: str, decrypt: bool = True) -> Optional[str]:
    """
    Get a parameter, preferring a local environment variable.

    Args:
        parameter_name: Full parameter name, e.g. ``/monifly/supabase-url``
        decrypt: Whether to decrypt SecureString parameters

    Returns:
        Parameter value or None if not found
    """
    local_value = os.getenv(env_name(parameter_name))
    if local_value:
        logger.debug(f"Using local environment variable for {parameter_name}")
        return local_value

    if os.getenv("MONIFLY_DISABLE_SSM"):
        return None

    try:
        response = get_ssm_client().get_parameter(
            Name=parameter_name, WithDecryption=decrypt
        )
        logger.debug(f"Retrieved parameter {parameter_name} from Parameter Store")
        return response["Parameter"]["Value"]

    except ClientError as e:
        if e.response["Error"]["Code"] == "ParameterNotFound":
            logger.warning(f"Parameter {parameter_name} not found in Parameter Store")
        else:
            logger.error(f"Error retrieving parameter {parameter_name}: {e}")
        return None
    except BotoCoreError as e:
        # No credentials or no region: typical for local runs
        logger.warning(f"Parameter Store unavailable for {parameter_name}: {e}")
        return None


class ParameterStoreConfig:
    """Prefixed view over ``get_parameter`` with a per-instance cache."""

    def __init__(self, parameter_prefix: str = PARAMETER_PREFIX):
        self.parameter_prefix = parameter_prefix.rstrip("/")
        self._config_cache: Dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._config_cache:
            return self._config_cache[key]

        value = get_parameter(f"{self.parameter_prefix}/{key}")
        if value is None:
            value = default

        self._config_cache[key] = value
        return value

    def get_required(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            raise ConfigurationError(
                f"Required parameter {self.parameter_prefix}/{key} "
                f"(env {env_name(key)}) is not set"
            )
        return value


class AppConfig(BaseModel):
    """Resolved settings for one process."""

    supabase_url: str = Field(..., min_length=1)
    supabase_anon_key: str = Field(..., min_length=1)
    site_url: Optional[str] = None
    supabase_jwt_secret: Optional[str] = None
    state_table_name: Optional[str] = None
    state_file: str = ".monifly_state.json"
    supabase_timeout: float = Field(10.0, gt=0)

    def email_redirect(self, path: str, origin: Optional[str] = None) -> Optional[str]:
        """Absolute link used in auth emails; falls back to the request origin."""
        base = self.site_url or origin
        if not base:
            return None
        return f"{base.rstrip('/')}/{path.lstrip('/')}"


config = ParameterStoreConfig()


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """
    Load the application settings once per process.

    Raises:
        ConfigurationError: If the Supabase URL or anon key is missing
    """
    missing = [
        env_name(key)
        for key in REQUIRED_KEYS
        if not config.get(key)
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}"
        )

    app_config = AppConfig(
        supabase_url=config.get("supabase-url").rstrip("/"),
        supabase_anon_key=config.get("supabase-anon-key"),
        site_url=config.get("site-url"),
        supabase_jwt_secret=config.get("supabase-jwt-secret"),
        state_table_name=config.get("state-table-name"),
        state_file=config.get("state-file", ".monifly_state.json"),
        supabase_timeout=float(config.get("supabase-timeout", 10)),
    )
    logger.info(
        "Loaded application configuration",
        extra={
            "supabase_url": app_config.supabase_url,
            "site_url": app_config.site_url,
            "state_backend": "dynamodb" if app_config.state_table_name else "file",
        },
    )
    return app_config


def clear_cache():
    """Clear parameter cache. Useful for testing or config updates."""
    get_parameter.cache_clear()
    get_app_config.cache_clear()
    config._config_cache.clear()
    logger.info("Parameter Store cache cleared")
