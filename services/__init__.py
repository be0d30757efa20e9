"""
Services package for business logic and external integrations.

This package contains the Supabase client and token validation, the
persisted client state, and the stateful helpers behind the web forms:
the step wizard, the attempt limiter and the streak counter.
"""

from .errors import BackendError, ErrorKind
from .supabase_auth import supabase_auth

__all__ = [
    "BackendError",
    "ErrorKind",
    "supabase_auth",
]
