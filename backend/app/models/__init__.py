"""
Database Models Package

This module exports the SQLAlchemy models used by the calling service.

Tables:
1. users - User directory with presence flags
2. calls - Durable call records
"""

from .database import (
    engine,
    AsyncSessionLocal,
    Base,
    init_db,
    reset_db,
    get_db,
)

from .user import User
from .call import ACTIVE_CALL_STATUSES, Call, CallStatus

__all__ = [
    # Database utilities
    "engine",
    "AsyncSessionLocal",
    "Base",
    "init_db",
    "reset_db",
    "get_db",

    # Models
    "User",
    "Call",
    "CallStatus",
    "ACTIVE_CALL_STATUSES",
]
