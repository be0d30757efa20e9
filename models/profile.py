"""User profile model."""

from datetime import date, datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from models.dates import as_date

DEFAULT_COUNTRY = "CO"
DEFAULT_NAME = "Usuario"


class Profile(BaseModel):
    """A row of the ``profiles`` table, keyed by the auth user id."""

    id: str
    full_name: str = DEFAULT_NAME
    country_code: str = DEFAULT_COUNTRY
    current_streak: int = Field(0, ge=0)
    max_streak: int = Field(0, ge=0)
    last_activity_date: Optional[date] = None
    has_seen_welcome: bool = False
    welcome_seen_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Profile":
        data = {key: value for key, value in record.items() if value is not None}
        if "last_activity_date" in data:
            data["last_activity_date"] = as_date(data["last_activity_date"])
        return cls(**data)

    @classmethod
    def default_for(
        cls, user_id: str, email: Optional[str], metadata: Optional[Dict[str, Any]]
    ) -> "Profile":
        """Profile built from sign-up metadata when the database has none yet."""
        metadata = metadata or {}
        name = metadata.get("full_name") or (email or "").split("@")[0] or DEFAULT_NAME
        return cls(
            id=user_id,
            full_name=name,
            country_code=metadata.get("country_code") or DEFAULT_COUNTRY,
        )


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    country_code: Optional[str] = Field(None, min_length=2, max_length=2)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
