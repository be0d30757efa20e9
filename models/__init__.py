"""
Models package for data structures.

This package contains Pydantic models for the Supabase tables the API
reads and writes, and the DynamoDB item used for persisted client state.
"""

from .debt import Debt, DebtCreate, DebtPayment, DebtPaymentCreate
from .dynamodb import DynamoDBItem, StateItem
from .goal import Goal, GoalCreate
from .profile import Profile, ProfileUpdate
from .transaction import Transaction, TransactionCreate

__all__ = [
    "Debt",
    "DebtCreate",
    "DebtPayment",
    "DebtPaymentCreate",
    "DynamoDBItem",
    "Goal",
    "GoalCreate",
    "Profile",
    "ProfileUpdate",
    "StateItem",
    "Transaction",
    "TransactionCreate",
]
