"""Tests for configuration loading, token validation and the authorizer."""

import json
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import jwt
import pytest

import authorizer
import main
from services.errors import BackendError, ConfigurationError, ErrorKind
from services.parameter_store import (AppConfig, clear_cache, env_name,
                                      get_app_config, get_parameter)
from services.supabase_auth import SupabaseAuth, supabase_auth

JWT_SECRET = "test-jwt-secret-that-is-long-enough-for-hs256"


def config(**overrides):
    values = {"supabase_url": "https://x.supabase.co", "supabase_anon_key": "anon"}
    values.update(overrides)
    return AppConfig(**values)


def bearer_event(token):
    return {"headers": {"authorization": f"Bearer {token}"}, "rawPath": "/debts"}


class TestConfiguration:
    """Tests for settings resolution."""

    def test_env_name(self):
        """Parameter names map to environment variable names."""
        assert env_name("/monifly/supabase-anon-key") == "SUPABASE_ANON_KEY"

    def test_environment_wins(self, monkeypatch):
        """Environment variables are read before Parameter Store."""
        monkeypatch.setenv("SITE_URL", "https://app.example.com")
        get_parameter.cache_clear()
        try:
            assert get_parameter("/monifly/site-url") == "https://app.example.com"
        finally:
            get_parameter.cache_clear()

    def test_missing_required_setting(self, monkeypatch):
        """Startup fails fast without the Supabase URL."""
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        clear_cache()
        try:
            with pytest.raises(ConfigurationError):
                get_app_config()
        finally:
            monkeypatch.undo()
            clear_cache()

    def test_email_redirect(self):
        """Auth email links use the site URL, else the request origin."""
        assert config(site_url="https://app.example.com/").email_redirect(
            "/update-password"
        ) == "https://app.example.com/update-password"
        assert config().email_redirect("/update-password", "http://localhost:5173") == (
            "http://localhost:5173/update-password"
        )
        assert config().email_redirect("/update-password") is None


class TestSupabaseAuth:
    """Tests for access-token validation."""

    def test_valid_token_with_secret(self):
        """Tokens signed with the project secret are accepted locally."""
        token = jwt.encode(
            {"sub": "user-1", "email": "ana@example.com", "aud": "authenticated",
             "exp": int(time.time()) + 300},
            JWT_SECRET,
            algorithm="HS256",
        )
        auth = SupabaseAuth(app_config=config(supabase_jwt_secret=JWT_SECRET))

        user = auth.get_user_from_request(bearer_event(token))

        assert user["user_id"] == "user-1"
        assert user["email"] == "ana@example.com"

    def test_expired_and_forged_tokens(self):
        """Expired or wrongly signed tokens are rejected."""
        auth = SupabaseAuth(app_config=config(supabase_jwt_secret=JWT_SECRET))
        expired = jwt.encode(
            {"sub": "user-1", "aud": "authenticated", "exp": int(time.time()) - 10},
            JWT_SECRET,
            algorithm="HS256",
        )
        forged = jwt.encode(
            {"sub": "user-1", "aud": "authenticated", "exp": int(time.time()) + 300},
            "another-secret-that-is-also-long-enough-for-hs256",
            algorithm="HS256",
        )
        assert auth.validate_jwt_token(expired) is None
        assert auth.validate_jwt_token(forged) is None

    def test_validation_via_api(self):
        """Without a secret the token is checked against Supabase Auth."""
        client = MagicMock()
        client.get_user.return_value = {"id": "user-1", "email": "ana@example.com"}
        auth = SupabaseAuth(app_config=config(), client=client)

        assert auth.validate_jwt_token("tok")["user_id"] == "user-1"
        client.get_user.assert_called_once_with(access_token="tok")

        client.get_user.side_effect = BackendError(ErrorKind.AUTH, "bad jwt")
        assert auth.validate_jwt_token("tok") is None

    def test_no_header(self):
        """Requests without a bearer token have no user."""
        auth = SupabaseAuth(app_config=config(), client=MagicMock())
        assert auth.get_user_from_request({"headers": {}}) is None


class TestAuthorizer:
    """Tests for the API Gateway authorizer."""

    def test_authorized(self, monkeypatch):
        """Valid tokens pass the user id and email to the handlers."""
        monkeypatch.setattr(
            supabase_auth,
            "get_user_from_request",
            lambda event: {"user_id": "user-1", "email": "ana@example.com"},
        )
        result = authorizer.lambda_handler(bearer_event("tok"), SimpleNamespace())
        assert result == {
            "isAuthorized": True,
            "context": {
                "principalId": "user-1",
                "user_id": "user-1",
                "email": "ana@example.com",
                "full_name": "",
            },
        }

    def test_denied(self, monkeypatch):
        """Invalid tokens and validation crashes deny access."""
        monkeypatch.setattr(supabase_auth, "get_user_from_request", lambda event: None)
        assert authorizer.lambda_handler({}, SimpleNamespace()) == {"isAuthorized": False}

        def explode(event):
            raise RuntimeError("boom")

        monkeypatch.setattr(supabase_auth, "get_user_from_request", explode)
        assert authorizer.lambda_handler({}, SimpleNamespace()) == {"isAuthorized": False}

    def test_display_name_from_metadata(self, monkeypatch):
        """The sign-up name travels in the context as a string."""
        monkeypatch.setattr(
            supabase_auth,
            "get_user_from_request",
            lambda event: {
                "user_id": "user-1",
                "email": None,
                "user_metadata": {"full_name": "Ana"},
            },
        )
        context = authorizer.lambda_handler({}, SimpleNamespace())["context"]
        assert context["full_name"] == "Ana"
        assert context["email"] == ""


class TestHealthz:
    """Tests for the health check."""

    def test_healthz(self, lambda_context):
        """The health check answers without touching Supabase."""
        response = main.healthz({}, lambda_context)
        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["status"] == "healthy"
        assert body["service"] == "monifly-api"
        assert body["checks"] == {"config": "ok", "state_backend": "file"}

    def test_degraded_without_config(self, monkeypatch, lambda_context):
        """Missing Supabase settings report 503."""
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        clear_cache()
        try:
            response = main.healthz({}, lambda_context)
        finally:
            monkeypatch.undo()
            clear_cache()
        assert response["statusCode"] == 503
        body = json.loads(response["body"])
        assert body["status"] == "degraded"
        assert "SUPABASE_ANON_KEY" in body["checks"]["config"]
