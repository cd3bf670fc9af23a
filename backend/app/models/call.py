"""
Call Model - Durable Call Records

One row per call attempt, written by the Call Record Sink as the call
moves through its states. The signaling core never reads it back; the
history API and the startup cleanup do.
"""
from sqlalchemy import Column, String, DateTime, Integer, Enum as SQLEnum
from datetime import datetime
import enum

from .database import Base


class CallStatus(str, enum.Enum):
    """Call status states"""
    INITIATED = "initiated"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ENDED = "ended"
    EXPIRED = "expired"


# Statuses a call record can be left in by a process that stopped mid-call
ACTIVE_CALL_STATUSES = (CallStatus.INITIATED, CallStatus.ACCEPTED)


class Call(Base):
    """Call record model"""
    __tablename__ = "calls"

    # Same id as the in-memory session's callId
    id = Column(String(36), primary_key=True)

    caller_user_id = Column(String(36), nullable=False, index=True)
    callee_user_id = Column(String(36), nullable=False, index=True)

    status = Column(
        SQLEnum(CallStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
        default=CallStatus.INITIATED,
        index=True,
    )
    end_reason = Column(String(32), nullable=True)

    # Timing
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=True)
