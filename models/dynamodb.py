"""DynamoDB item models for persisted client state."""

from typing import Optional

from pydantic import BaseModel


class DynamoDBItem(BaseModel):
    """Base class for all DynamoDB items."""

    PK: str
    SK: str


class StateItem(DynamoDBItem):
    """One key of a client's persisted state."""

    PK: str  # CLIENT#{client_id}
    SK: str  # STATE#{key}
    value: str  # JSON-encoded
    updated_at: str
    expires_at: Optional[int] = None  # epoch seconds, DynamoDB TTL attribute
