"""
Handlers package for Lambda function handlers.

This package contains the API endpoint handlers for authentication,
transactions, debts, goals, analytics, the profile, the dashboard and the
step-by-step form drafts.
"""

from . import (analytics, auth, dashboard, debts, goals, profile,
               transactions, wizards)

__all__ = [
    "analytics",
    "auth",
    "dashboard",
    "debts",
    "goals",
    "profile",
    "transactions",
    "wizards",
]
