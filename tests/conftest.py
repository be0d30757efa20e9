"""
Shared fixtures.

No test talks to Supabase or AWS: handlers get an in-memory
``FakeSupabaseClient`` and state goes to a JSON file under ``tmp_path``.
"""

import copy
import json
import os
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ["MONIFLY_DISABLE_SSM"] = "1"
os.environ.pop("STATE_TABLE_NAME", None)

from services.errors import BackendError, ErrorKind  # noqa: E402
from services.state_store import JSONFileStateStore, set_state_store  # noqa: E402

HANDLER_MODULES = (
    "handlers.auth",
    "handlers.transactions",
    "handlers.debts",
    "handlers.goals",
    "handlers.analytics",
    "handlers.profile",
    "handlers.dashboard",
    "handlers.wizards",
)


class FakeQuery:
    """Evaluates the ``TableQuery`` chain against in-memory rows."""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.method = "GET"
        self.filters = []
        self.ordering = []
        self.limit_count = None
        self.body = None
        self.is_single = False

    def select(self, columns="*"):
        self.method = "GET"
        return self

    def insert(self, rows):
        self.method = "POST"
        self.body = rows if isinstance(rows, list) else [rows]
        return self

    def update(self, values):
        self.method = "PATCH"
        self.body = values
        return self

    def delete(self):
        self.method = "DELETE"
        return self

    def eq(self, column, value):
        self.filters.append((column, lambda v, value=value: str(v) == str(value)))
        return self

    def in_(self, column, values):
        allowed = {str(value) for value in values}
        self.filters.append((column, lambda v: str(v) in allowed))
        return self

    def order(self, column, desc=False):
        self.ordering.append((column, desc))
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def single(self):
        self.is_single = True
        return self

    def _matches(self, row):
        return all(check(row.get(column)) for column, check in self.filters)

    def execute(self):
        self.client.calls.append((self.table, self.method))
        error = self.client.fail_next.pop(self.table, None)
        if error is not None:
            raise error

        rows = self.client.tables.setdefault(self.table, [])
        if self.method == "POST":
            created = []
            for row in self.body:
                row = dict(row)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
                rows.append(row)
                created.append(copy.deepcopy(row))
            return created

        matched = [row for row in rows if self._matches(row)]
        if self.method == "PATCH":
            for row in matched:
                row.update(self.body)
        elif self.method == "DELETE":
            self.client.tables[self.table] = [r for r in rows if not self._matches(r)]

        result = [copy.deepcopy(row) for row in matched]
        for column, desc in reversed(self.ordering):
            result.sort(
                key=lambda r: (r.get(column) is None, str(r.get(column) or "")),
                reverse=desc,
            )
        if self.limit_count is not None:
            result = result[: self.limit_count]

        if self.is_single:
            if not result:
                raise BackendError(ErrorKind.NOT_FOUND, "No rows", code="PGRST116")
            return result[0]
        return result


class FakeSupabaseClient:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.fail_next = {}
        self.sign_in_with_password = MagicMock()
        self.sign_up = MagicMock()
        self.reset_password_for_email = MagicMock(return_value=None)
        self.exchange_code_for_session = MagicMock()
        self.refresh_session = MagicMock()
        self.get_user = MagicMock(return_value={})
        self.update_user = MagicMock(return_value={})
        self.sign_out = MagicMock(return_value=None)

    def table(self, name):
        return FakeQuery(self, name)

    def seed(self, table, *rows):
        self.tables.setdefault(table, []).extend(dict(row) for row in rows)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def state_store(tmp_path):
    store = JSONFileStateStore(str(tmp_path / "state.json"))
    set_state_store(store)
    yield store
    set_state_store(None)


@pytest.fixture
def fake_client(monkeypatch):
    import importlib

    client = FakeSupabaseClient()
    for module_name in HANDLER_MODULES:
        module = importlib.import_module(module_name)
        monkeypatch.setattr(module, "get_client", lambda *args, **kwargs: client)
    return client


@pytest.fixture
def lambda_context():
    return SimpleNamespace(function_name="test-function", aws_request_id="req-123")


@pytest.fixture
def make_event():
    """Build an HTTP API (payload v2) event, authorized by default."""

    def _make_event(
        body=None,
        path_params=None,
        query=None,
        user_id="user-1",
        email="ana@example.com",
        token="user-token",
        headers=None,
        authorized=True,
    ):
        event_headers = {"x-client-id": "browser-1"}
        if token:
            event_headers["authorization"] = f"Bearer {token}"
        event_headers.update(headers or {})

        request_context = {"http": {"method": "POST", "sourceIp": "203.0.113.7"}}
        if authorized:
            request_context["authorizer"] = {
                "lambda": {"user_id": user_id, "email": email}
            }

        return {
            "rawPath": "/test",
            "headers": event_headers,
            "requestContext": request_context,
            "pathParameters": path_params,
            "queryStringParameters": query,
            "body": json.dumps(body) if body is not None else None,
        }

    return _make_event


def body_of(response):
    return json.loads(response["body"])
