"""
Call Module

Call session state machine, the in-memory session table, the durable
record sink and the domain exceptions reported to clients.
"""
from .exceptions import (
    CallServiceError,
    TargetUnavailableError,
    TargetBusyError,
    CallNotFoundError,
    InvalidStateError,
    NotAuthorizedError,
)
from .records import CallRecord, CallRecordSink, SqlCallRecordSink, list_calls
from .session import CallParty, CallSession, TRANSITIONS
from .table import CallSessionTable

__all__ = [
    "CallServiceError",
    "TargetUnavailableError",
    "TargetBusyError",
    "CallNotFoundError",
    "InvalidStateError",
    "NotAuthorizedError",
    "CallRecord",
    "CallRecordSink",
    "SqlCallRecordSink",
    "list_calls",
    "CallParty",
    "CallSession",
    "TRANSITIONS",
    "CallSessionTable",
]
