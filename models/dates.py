"""Date helpers shared by the models."""

from datetime import date, datetime, timezone
from typing import Any, Optional


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def as_date(value: Any) -> Optional[date]:
    """Accept ``date``, ``datetime`` or ISO text (date or timestamp)."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None
