"""Income and expense transaction models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


EXPENSE_CATEGORIES = {
    "comida": "Food",
    "transporte": "Transport",
    "entretenimiento": "Entertainment",
    "cuentas": "Bills and payments",
    "otros": "Other",
}

INCOME_CATEGORIES = {
    "salario": "Salary",
    "ventas": "Sales",
    "regalo": "Gift",
    "otros": "Other",
}

EXPENSE_ACCOUNTS = {
    "efectivo": "Cash",
    "debito": "Debit",
    "credito": "Credit",
    "transferencia": "Transfer",
}

INCOME_ACCOUNTS = {
    "efectivo": "Cash",
    "cuenta_principal": "Main account (debit)",
    "transferencia": "Transfer",
}

UNCATEGORIZED = "Sin categoría"


def categories_for(transaction_type: TransactionType) -> Dict[str, str]:
    if transaction_type == TransactionType.EXPENSE:
        return EXPENSE_CATEGORIES
    return INCOME_CATEGORIES


def accounts_for(transaction_type: TransactionType) -> Dict[str, str]:
    if transaction_type == TransactionType.EXPENSE:
        return EXPENSE_ACCOUNTS
    return INCOME_ACCOUNTS


class Transaction(BaseModel):
    """A row of the ``transactions`` table."""

    id: Optional[str] = None
    user_id: Optional[str] = None
    amount: Decimal = Field(..., ge=0)
    type: TransactionType
    description: Optional[str] = None
    category: Optional[str] = None
    account: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Transaction":
        data = dict(record)
        data["amount"] = data.get("amount") or 0
        return cls(**data)


class TransactionCreate(BaseModel):
    """Validated transaction form."""

    amount: Decimal = Field(..., gt=0)
    type: TransactionType
    description: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1)
    account: str = Field(..., min_length=1)

    def to_payload(self, user_id: str) -> Dict[str, Any]:
        return {
            "user_id": user_id,
            "amount": float(self.amount),
            "type": self.type.value,
            "description": self.description.strip(),
            "category": self.category,
            "account": self.account,
        }
