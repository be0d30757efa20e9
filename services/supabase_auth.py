"""
Supabase access-token validation for the API Gateway authorizer.
"""

from typing import Any, Dict, Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from services.errors import BackendError
from services.parameter_store import AppConfig, get_app_config
from services.supabase_client import SupabaseClient
from utils.logging import setup_logger
from utils.security import extract_token_from_header

logger = setup_logger(__name__)


def token_from_event(event: Dict[str, Any]) -> Optional[str]:
    headers = event.get("headers") or {}
    return extract_token_from_header(
        headers.get("Authorization") or headers.get("authorization")
    )


class SupabaseAuth:
    """
    Validates Supabase-issued access tokens.

    With ``SUPABASE_JWT_SECRET`` configured the HS256 signature is checked
    locally; otherwise the token is sent to ``/auth/v1/user``.
    """

    def __init__(
        self,
        app_config: Optional[AppConfig] = None,
        client: Optional[SupabaseClient] = None,
    ):
        self._app_config = app_config
        self._client = client

    @property
    def app_config(self) -> AppConfig:
        if self._app_config is None:
            self._app_config = get_app_config()
        return self._app_config

    @property
    def client(self) -> SupabaseClient:
        if self._client is None:
            self._client = SupabaseClient.from_config(app_config=self.app_config)
        return self._client

    def validate_jwt_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate a Supabase JWT token and return user information.

        Returns:
            Dictionary containing user information if valid, None otherwise
        """
        if self.app_config.supabase_jwt_secret:
            return self._validate_jwt_manual(token)

        logger.info("Using API-based token verification (no JWT secret available)")
        return self._validate_jwt_via_api(token)

    def _validate_jwt_manual(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            payload = jwt.decode(
                token,
                self.app_config.supabase_jwt_secret,
                algorithms=["HS256"],
                audience="authenticated",
            )
        except ExpiredSignatureError:
            logger.warning("JWT token has expired")
            return None
        except InvalidTokenError as e:
            logger.warning(f"Invalid JWT token: {str(e)}")
            return None

        return {
            "user_id": payload.get("sub"),
            "email": payload.get("email"),
            "user_metadata": payload.get("user_metadata", {}),
            "exp": payload.get("exp"),
        }

    def _validate_jwt_via_api(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            user = self.client.get_user(access_token=token)
        except BackendError as e:
            logger.warning(
                "Token validation failed via API",
                extra={"error_kind": e.kind.value, "status_code": e.status_code},
            )
            return None

        return {
            "user_id": user.get("id"),
            "email": user.get("email"),
            "user_metadata": user.get("user_metadata", {}),
            "exp": None,  # Not provided by the API
        }

    def get_user_from_request(self, event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Extract and validate the caller from an API Gateway event.

        Returns:
            User information if authentication succeeded, None otherwise
        """
        token = token_from_event(event)
        if not token:
            logger.debug("No valid Authorization header found")
            return None
        return self.validate_jwt_token(token)


# Global instance
supabase_auth = SupabaseAuth()
