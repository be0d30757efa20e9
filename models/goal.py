"""Savings goal model."""

import math
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator

from models.dates import as_date


class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


def months_between(start: date, end: date) -> int:
    """Whole calendar months from ``start``'s month to ``end``'s month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def percent_of(current: Decimal, target: Decimal) -> int:
    if not current or not target:
        return 0
    return round(float(current) / float(target) * 100)


def derive_status(current: Decimal, target: Decimal) -> GoalStatus:
    return GoalStatus.COMPLETED if current >= target else GoalStatus.ACTIVE


class Goal(BaseModel):
    """A row of the ``goals`` table."""

    id: Optional[str] = None
    user_id: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    target_amount: Decimal = Field(Decimal("0"), ge=0)
    current_saved: Decimal = Field(Decimal("0"), ge=0)
    target_date: Optional[date] = None
    status: GoalStatus = GoalStatus.ACTIVE
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Goal":
        data = dict(record)
        data["target_date"] = as_date(data.get("target_date"))
        data["target_amount"] = data.get("target_amount") or 0
        data["current_saved"] = data.get("current_saved") or 0
        return cls(**data)

    @property
    def progress_percentage(self) -> int:
        return percent_of(self.current_saved, self.target_amount)

    def months_until_target(self, today: date) -> int:
        if self.target_date is None:
            return 0
        return max(months_between(today, self.target_date), 0)

    def monthly_required(self, today: date) -> int:
        """Amount to save per month to reach the target on time, rounded up."""
        months = self.months_until_target(today)
        if months <= 0:
            return 0
        remaining = self.target_amount - self.current_saved
        if remaining <= 0:
            return 0
        return math.ceil(remaining / months)

    def to_response(self, today: date) -> Dict[str, Any]:
        data = self.model_dump()
        data.update(
            {
                "progress_percentage": self.progress_percentage,
                "months_until_target": self.months_until_target(today),
                "monthly_required": self.monthly_required(today),
            }
        )
        return data


class GoalCreate(BaseModel):
    """Validated goal form; the status is derived, never submitted."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    target_amount: Decimal = Field(..., gt=0)
    current_saved: Decimal = Field(Decimal("0"), ge=0)
    target_date: date

    @model_validator(mode="after")
    def current_within_target(self):
        if self.current_saved > self.target_amount:
            raise ValueError("Current amount cannot exceed the target amount")
        return self

    @property
    def status(self) -> GoalStatus:
        return derive_status(self.current_saved, self.target_amount)

    def to_payload(self, user_id: str) -> Dict[str, Any]:
        return {
            "user_id": user_id,
            "name": self.name.strip(),
            "description": (self.description or "").strip(),
            "target_amount": float(self.target_amount),
            "current_saved": float(self.current_saved),
            "target_date": self.target_date.isoformat(),
            "status": self.status.value,
        }


class GoalContribution(BaseModel):
    """Money added to a goal's savings."""

    amount: Decimal = Field(..., gt=0)

    def apply(self, goal: Goal) -> Dict[str, Any]:
        """Update for the goal row; the target date is not checked again."""
        current = goal.current_saved + self.amount
        return {
            "current_saved": float(current),
            "status": derive_status(current, goal.target_amount).value,
        }
