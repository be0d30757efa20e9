"""
Persisted client state.

The web client kept a handful of values in browser local storage: the
dark-mode flag and the attempt limiter's timestamps. Here the same
key/value state lives either in a DynamoDB table (deployed) or in a local
JSON file (development and tests). Wizard drafts are stored the same way.

Access is not coordinated across instances; the last writer wins.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
import botocore

from models.dynamodb import StateItem
from services.parameter_store import AppConfig, get_app_config
from utils.logging import setup_logger

logger = setup_logger(__name__)

_dynamodb_resource = None


def get_dynamodb_resource():
    """Shared DynamoDB resource, created on first use."""
    global _dynamodb_resource
    if _dynamodb_resource is None:
        _dynamodb_resource = boto3.resource("dynamodb")
    return _dynamodb_resource


class StateStore:
    """Key/value storage scoped to one client (a browser, a user, a form)."""

    def get(self, client_id: str, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def put(
        self, client_id: str, key: str, value: Any, expires_at: Optional[int] = None
    ) -> None:
        raise NotImplementedError

    def delete(self, client_id: str, key: str) -> None:
        raise NotImplementedError


class DynamoDBStateStore(StateStore):
    """
    State items in a single DynamoDB table.

    Items are keyed ``PK=CLIENT#{client_id}``, ``SK=STATE#{key}`` and carry
    the JSON-encoded value. ``expires_at`` maps to the table's TTL attribute.
    """

    def __init__(self, table_name: Optional[str] = None, table=None):
        if table is None:
            table_name = table_name or os.environ.get("STATE_TABLE_NAME", "MoniFlyState")
            table = get_dynamodb_resource().Table(table_name)
        self.table = table

    @staticmethod
    def _key(client_id: str, key: str) -> Dict[str, str]:
        return {"PK": f"CLIENT#{client_id}", "SK": f"STATE#{key}"}

    def get(self, client_id: str, key: str, default: Any = None) -> Any:
        try:
            response = self.table.get_item(Key=self._key(client_id, key))
        except botocore.exceptions.ClientError as err:
            logger.error(
                "Couldn't get state %s for client %s from table %s. Error: %s: %s",
                key,
                client_id,
                self.table.name,
                err.response["Error"]["Code"],
                err.response["Error"]["Message"],
            )
            raise

        item = response.get("Item")
        if not item:
            return default
        return json.loads(item["value"])

    def put(
        self, client_id: str, key: str, value: Any, expires_at: Optional[int] = None
    ) -> None:
        item = StateItem(
            **self._key(client_id, key),
            value=json.dumps(value, default=str),
            updated_at=datetime.now(timezone.utc).isoformat(),
            expires_at=expires_at,
        )
        try:
            self.table.put_item(Item=item.model_dump(exclude_none=True))
        except botocore.exceptions.ClientError as err:
            logger.error(
                "Couldn't put state %s for client %s in table %s. Error: %s: %s",
                key,
                client_id,
                self.table.name,
                err.response["Error"]["Code"],
                err.response["Error"]["Message"],
            )
            raise

    def delete(self, client_id: str, key: str) -> None:
        try:
            self.table.delete_item(Key=self._key(client_id, key))
        except botocore.exceptions.ClientError as err:
            logger.error(
                "Couldn't delete state %s for client %s from table %s. Error: %s: %s",
                key,
                client_id,
                self.table.name,
                err.response["Error"]["Code"],
                err.response["Error"]["Message"],
            )
            raise


class JSONFileStateStore(StateStore):
    """
    State kept in one JSON file, the local-storage analogue.

    The file maps ``client_id -> {key: value}`` and is rewritten on every
    change.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            content = f.read()
        return json.loads(content) if content.strip() else {}

    def _save(self, data: Dict[str, Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, default=str)
        tmp_path.replace(self.path)

    def get(self, client_id: str, key: str, default: Any = None) -> Any:
        return self._load().get(client_id, {}).get(key, default)

    def put(
        self, client_id: str, key: str, value: Any, expires_at: Optional[int] = None
    ) -> None:
        data = self._load()
        data.setdefault(client_id, {})[key] = value
        self._save(data)

    def delete(self, client_id: str, key: str) -> None:
        data = self._load()
        entries = data.get(client_id)
        if entries is None or key not in entries:
            return
        del entries[key]
        if not entries:
            del data[client_id]
        self._save(data)


_state_store: Optional[StateStore] = None


def get_state_store(app_config: Optional[AppConfig] = None) -> StateStore:
    """Process-wide store: DynamoDB when a table is configured, else a JSON file."""
    global _state_store
    if _state_store is None:
        app_config = app_config or get_app_config()
        if app_config.state_table_name:
            _state_store = DynamoDBStateStore(app_config.state_table_name)
        else:
            logger.info(
                "No state table configured, using local file",
                extra={"state_file": app_config.state_file},
            )
            _state_store = JSONFileStateStore(app_config.state_file)
    return _state_store


def set_state_store(store: Optional[StateStore]) -> None:
    """Replace the process-wide store (``None`` resets it)."""
    global _state_store
    _state_store = store
