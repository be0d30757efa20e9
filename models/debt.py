"""Debt and debt payment models."""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from models.dates import as_date, utc_today


class DebtType(str, Enum):
    OWING = "debt_owing"  # I owe someone
    OWED = "debt_owed"  # someone owes me


class PaymentType(str, Enum):
    FIXED = "fixed"
    INSTALLMENTS = "installments"


class PaymentFrequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class DebtStatus(str, Enum):
    ACTIVE = "active"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class DebtFilter(str, Enum):
    ALL = "all"  # every unpaid debt
    OWED_TO_ME = "me_deben"
    I_OWE = "yo_debo"
    PAID = "paid"


class DebtSort(str, Enum):
    DUE_DATE = "due_date"
    AMOUNT = "amount"
    CREATED_AT = "created_at"


DUE_SOON_DAYS = 7


class DebtPayment(BaseModel):
    """A payment recorded against a debt."""

    id: Optional[str] = None
    debt_id: str
    amount: Decimal = Field(..., ge=0)
    payment_date: Optional[date] = None
    notes: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "DebtPayment":
        data = dict(record)
        data["payment_date"] = as_date(data.get("payment_date"))
        data["amount"] = data.get("amount") or 0
        return cls(**data)


class DebtPaymentCreate(BaseModel):
    """Payload for ``debt_payments`` inserts; ``user_id`` is filled by the database."""

    debt_id: str
    amount: Decimal = Field(..., gt=0)
    payment_date: date = Field(default_factory=utc_today)
    notes: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        notes = (self.notes or "").strip()
        return {
            "debt_id": self.debt_id,
            "amount": float(self.amount),
            "payment_date": self.payment_date.isoformat(),
            "notes": notes or None,
        }


class Debt(BaseModel):
    """A debt row joined with its payments."""

    id: str
    user_id: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    original_amount: Decimal = Field(..., ge=0)
    remaining_amount: Optional[Decimal] = Field(None, ge=0)
    type: DebtType = DebtType.OWING
    payment_type: PaymentType = PaymentType.FIXED
    payment_frequency: Optional[PaymentFrequency] = None
    total_installments: int = 0
    paid_installments: int = 0
    due_date: Optional[date] = None
    status: DebtStatus = DebtStatus.ACTIVE
    creditor_debtor_name: Optional[str] = None
    created_at: Optional[datetime] = None
    payments: List[DebtPayment] = Field(default_factory=list)

    @classmethod
    def from_record(
        cls, record: Dict[str, Any], payments: Optional[List[Dict[str, Any]]] = None
    ) -> "Debt":
        data = dict(record)
        data["due_date"] = as_date(data.get("due_date"))
        data["total_installments"] = data.get("total_installments") or 0
        data["paid_installments"] = data.get("paid_installments") or 0
        rows = payments if payments is not None else data.pop("debt_payments", None) or []
        data.pop("debt_payments", None)
        data["payments"] = [DebtPayment.from_record(row) for row in rows]
        return cls(**data)

    @property
    def total_paid(self) -> Decimal:
        return sum((payment.amount for payment in self.payments), Decimal("0"))

    @property
    def pending_amount(self) -> Decimal:
        return self.original_amount - self.total_paid

    @property
    def is_paid(self) -> bool:
        return self.pending_amount <= 0

    @property
    def progress_percentage(self) -> float:
        if self.original_amount == 0:
            return 0.0
        return min(float(self.total_paid / self.original_amount * 100), 100.0)

    @property
    def recommended_payment(self) -> Decimal:
        if self.payment_type == PaymentType.INSTALLMENTS and self.total_installments:
            return self.original_amount / self.total_installments
        return self.pending_amount

    def days_until_due(self, today: date) -> Optional[int]:
        if self.due_date is None:
            return None
        return (self.due_date - today).days

    def due_status(self, today: date) -> str:
        if self.status == DebtStatus.PAID:
            return "paid"
        days = self.days_until_due(today)
        if days is None:
            return "no-due-date"
        if days < 0:
            return "overdue"
        if days <= DUE_SOON_DAYS:
            return "due-soon"
        return "normal"

    def matches(self, debt_filter: DebtFilter) -> bool:
        if debt_filter == DebtFilter.PAID:
            return self.is_paid
        if self.is_paid:
            return False
        if debt_filter == DebtFilter.OWED_TO_ME:
            return self.type == DebtType.OWED
        if debt_filter == DebtFilter.I_OWE:
            return self.type == DebtType.OWING
        return True

    def to_response(self, today: date) -> Dict[str, Any]:
        data = self.model_dump(exclude={"payments"})
        data.update(
            {
                "payments": [payment.model_dump() for payment in self.payments],
                "total_paid": self.total_paid,
                "pending_amount": self.pending_amount,
                "is_paid": self.is_paid,
                "progress_percentage": round(self.progress_percentage, 2),
                "recommended_payment": self.recommended_payment,
                "days_until_due": self.days_until_due(today),
                "due_status": self.due_status(today),
            }
        )
        return data


def sort_debts(debts: List[Debt], sort_by: DebtSort) -> List[Debt]:
    """Order debts the way the debt page lists them."""
    if sort_by == DebtSort.AMOUNT:
        return sorted(debts, key=lambda debt: debt.pending_amount, reverse=True)
    if sort_by == DebtSort.DUE_DATE:
        # Debts without a due date go last
        return sorted(
            debts, key=lambda debt: (debt.due_date is None, debt.due_date or date.max)
        )
    return sorted(
        debts,
        key=lambda debt: debt.created_at or datetime.min.replace(tzinfo=timezone.utc),
        reverse=True,
    )


class DebtCreate(BaseModel):
    """Validated debt form, rendered into a ``debts`` insert/update payload."""

    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    original_amount: Decimal = Field(..., gt=0)
    type: DebtType = DebtType.OWING
    payment_type: PaymentType = PaymentType.FIXED
    payment_frequency: Optional[PaymentFrequency] = PaymentFrequency.MONTHLY
    total_installments: Optional[int] = Field(1, le=120)
    due_date: Optional[date] = None
    status: DebtStatus = DebtStatus.ACTIVE
    creditor_debtor_name: Optional[str] = None

    @model_validator(mode="after")
    def check_installments(self):
        if self.payment_type == PaymentType.INSTALLMENTS:
            if not self.total_installments or self.total_installments < 1:
                raise ValueError("Installment debts need at least one installment")
            if self.payment_frequency is None:
                raise ValueError("Installment debts need a payment frequency")
        return self

    def to_payload(self, user_id: str) -> Dict[str, Any]:
        installments = self.payment_type == PaymentType.INSTALLMENTS
        amount = float(self.original_amount)
        return {
            "user_id": user_id,  # required by the WITH CHECK (user_id = auth.uid()) policy
            "title": self.title.strip(),
            "description": self.description or None,
            "original_amount": amount,
            "remaining_amount": amount,
            "type": self.type.value,
            "payment_type": self.payment_type.value,
            "payment_frequency": self.payment_frequency.value if installments else None,
            "total_installments": self.total_installments if installments else 0,
            "paid_installments": 0,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status.value,
            "creditor_debtor_name": self.creditor_debtor_name or None,
        }
