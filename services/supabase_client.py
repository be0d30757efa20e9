"""
Thin HTTP client for the hosted Supabase platform.

Two surfaces are covered:

- ``/rest/v1`` (PostgREST): CRUD against named tables through a small query
  builder. Every request carries the caller's access token, so row-level
  security decides what is visible and mutable.
- ``/auth/v1`` (GoTrue): password sign-in, sign-up, recovery emails, PKCE
  code exchange, token refresh, user lookup/update and sign-out.

Failures are raised as ``BackendError`` with a typed ``kind``.
"""

import json
from typing import Any, Dict, Iterable, List, Optional

import requests

from services.errors import (BackendError, ErrorKind, classify_auth_error,
                             classify_data_error)
from services.parameter_store import AppConfig, get_app_config
from utils.logging import setup_logger

logger = setup_logger(__name__)


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _json_body(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return {"message": response.text}


class TableQuery:
    """
    Builder for one PostgREST request against ``table``.

    Mirrors the supabase-js chain used by the web client::

        client.table("debts").select("*").eq("user_id", uid).order("created_at", desc=True).execute()
    """

    def __init__(self, client: "SupabaseClient", table: str):
        self._client = client
        self.table = table
        self.method = "GET"
        self.params: List[tuple] = []
        self.body: Any = None
        self.is_single = False

    def select(self, columns: str = "*") -> "TableQuery":
        self.method = "GET"
        self.params.append(("select", columns))
        return self

    def insert(self, rows: Any) -> "TableQuery":
        self.method = "POST"
        self.body = rows if isinstance(rows, list) else [rows]
        return self

    def update(self, values: Dict[str, Any]) -> "TableQuery":
        self.method = "PATCH"
        self.body = values
        return self

    def delete(self) -> "TableQuery":
        self.method = "DELETE"
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        self.params.append((column, f"eq.{_encode(value)}"))
        return self

    def in_(self, column: str, values: Iterable[Any]) -> "TableQuery":
        joined = ",".join(_encode(value) for value in values)
        self.params.append((column, f"in.({joined})"))
        return self

    def order(self, column: str, desc: bool = False) -> "TableQuery":
        self.params.append(("order", f"{column}.{'desc' if desc else 'asc'}"))
        return self

    def limit(self, count: int) -> "TableQuery":
        self.params.append(("limit", str(count)))
        return self

    def single(self) -> "TableQuery":
        self.is_single = True
        return self

    def execute(self) -> Any:
        """Run the request; returns a list of rows, or one row after ``single()``."""
        return self._client.execute(self)


class SupabaseClient:
    """
    Request-scoped Supabase client.

    Build one per incoming request with ``for_token`` so every data call is
    evaluated under that user's identity.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        access_token: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.access_token = access_token
        self.timeout = timeout
        self.http = session or requests.Session()

    @classmethod
    def from_config(
        cls, access_token: Optional[str] = None, app_config: Optional[AppConfig] = None
    ) -> "SupabaseClient":
        app_config = app_config or get_app_config()
        return cls(
            app_config.supabase_url,
            app_config.supabase_anon_key,
            access_token=access_token,
            timeout=app_config.supabase_timeout,
        )

    def for_token(self, access_token: str) -> "SupabaseClient":
        return SupabaseClient(
            self.url,
            self.anon_key,
            access_token=access_token,
            timeout=self.timeout,
            session=self.http,
        )

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.access_token or self.anon_key}",
            "Content-Type": "application/json",
        }

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(
                "Supabase request failed",
                extra={"method": method, "url": url, "error_type": type(e).__name__},
            )
            raise BackendError(ErrorKind.NETWORK, f"Could not reach Supabase: {e}")

    # Data API

    def table(self, name: str) -> TableQuery:
        return TableQuery(self, name)

    def execute(self, query: TableQuery) -> Any:
        headers = self._headers()
        if query.method in ("POST", "PATCH", "DELETE"):
            headers["Prefer"] = "return=representation"
        if query.is_single:
            headers["Accept"] = "application/vnd.pgrst.object+json"

        response = self._send(
            query.method,
            f"{self.url}/rest/v1/{query.table}",
            params=query.params,
            headers=headers,
            data=json.dumps(query.body, default=str) if query.body is not None else None,
        )
        payload = _json_body(response)

        if response.status_code >= 400:
            error = classify_data_error(
                response.status_code, payload or {}, table=query.table
            )
            logger.warning(
                "Supabase data request rejected",
                extra={
                    "table": query.table,
                    "method": query.method,
                    "status_code": response.status_code,
                    "error_kind": error.kind.value,
                    "error_code": error.code,
                },
            )
            raise error

        if query.is_single:
            return payload
        return payload if payload is not None else []

    # Auth API

    def _auth(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        token: Optional[str] = None,
    ) -> Any:
        response = self._send(
            method,
            f"{self.url}/auth/v1/{path}",
            params=params,
            headers=self._headers(token),
            data=json.dumps(body) if body is not None else None,
        )
        payload = _json_body(response)
        if response.status_code >= 400:
            error = classify_auth_error(response.status_code, payload or {})
            logger.warning(
                "Supabase auth request rejected",
                extra={
                    "auth_path": path,
                    "status_code": response.status_code,
                    "error_kind": error.kind.value,
                    "error_code": error.code,
                },
            )
            raise error
        return payload

    def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        return self._auth(
            "POST",
            "token",
            {"email": email, "password": password},
            params={"grant_type": "password"},
        )

    def sign_up(
        self,
        email: str,
        password: str,
        data: Optional[Dict[str, Any]] = None,
        redirect_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {"redirect_to": redirect_to} if redirect_to else None
        return self._auth(
            "POST",
            "signup",
            {"email": email, "password": password, "data": data or {}},
            params=params,
        )

    def reset_password_for_email(
        self, email: str, redirect_to: Optional[str] = None
    ) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._auth("POST", "recover", {"email": email}, params=params)

    def exchange_code_for_session(
        self, auth_code: str, code_verifier: Optional[str] = None
    ) -> Dict[str, Any]:
        return self._auth(
            "POST",
            "token",
            {"auth_code": auth_code, "code_verifier": code_verifier},
            params={"grant_type": "pkce"},
        )

    def refresh_session(self, refresh_token: str) -> Dict[str, Any]:
        return self._auth(
            "POST",
            "token",
            {"refresh_token": refresh_token},
            params={"grant_type": "refresh_token"},
        )

    def get_user(self, access_token: Optional[str] = None) -> Dict[str, Any]:
        return self._auth("GET", "user", token=access_token)

    def update_user(
        self, attributes: Dict[str, Any], access_token: Optional[str] = None
    ) -> Dict[str, Any]:
        return self._auth("PUT", "user", attributes, token=access_token)

    def sign_out(self, access_token: Optional[str] = None) -> None:
        self._auth("POST", "logout", token=access_token)


def get_client(access_token: Optional[str] = None) -> SupabaseClient:
    """Client for one request, acting as the holder of ``access_token``."""
    return SupabaseClient.from_config(access_token=access_token)
