"""
Call Record Sink

Durable log of call attempts and outcomes. The controller writes a record
on every state change and never reads them back; writes are best-effort
and must not slow the signaling path (see ``CallController._persist``).

Usage:
    sink = SqlCallRecordSink()
    await sink.persist_call_outcome(session.to_record())
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Protocol
import logging

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import END_REASON_SERVER_RESTART
from app.models.call import ACTIVE_CALL_STATUSES, Call, CallStatus
from app.services.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallRecord:
    """Snapshot of a CallSession as written to the sink."""
    call_id: str
    caller_user_id: str
    callee_user_id: str
    status: CallStatus
    started_at: datetime
    accepted_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    end_reason: Optional[str] = None


class CallRecordSink(Protocol):
    """Interface for durable call outcome storage."""

    async def persist_call_outcome(self, record: CallRecord) -> None:
        """Insert or update the record for ``record.call_id``."""
        ...


class SqlCallRecordSink:
    """Call Record Sink backed by the ``calls`` table."""

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        self._session_factory = session_factory

    def _session(self) -> AsyncSession:
        if self._session_factory is not None:
            return self._session_factory()
        # Resolved per call so a rebound factory (tests, scripts) is honoured
        from app.models import database
        return database.AsyncSessionLocal()

    async def persist_call_outcome(self, record: CallRecord) -> None:
        async with self._session() as db:
            call = await db.get(Call, record.call_id)
            if call is None:
                call = Call(id=record.call_id)
                db.add(call)

            call.caller_user_id = record.caller_user_id
            call.callee_user_id = record.callee_user_id
            call.status = record.status
            call.started_at = record.started_at
            call.accepted_at = record.accepted_at
            call.ended_at = record.ended_at
            call.duration_seconds = record.duration_seconds
            call.end_reason = record.end_reason

            await db.commit()

        logger.debug(f"[CallRecords] {record.call_id} persisted as {record.status.value}")

    async def list_calls(self, user_id: Optional[str] = None, limit: int = 50) -> List[Call]:
        """Newest-first call records, optionally only those involving ``user_id``."""
        async with self._session() as db:
            return await list_calls(db, user_id=user_id, limit=limit)

    async def close_orphaned_calls(self) -> int:
        """
        End records a previous process left in an active status.

        The in-memory session table does not survive a restart, so any
        initiated/accepted record found at startup can never finish normally.

        Returns:
            Number of records closed
        """
        async with self._session() as db:
            result = await db.execute(
                update(Call)
                .where(Call.status.in_(ACTIVE_CALL_STATUSES))
                .values(
                    status=CallStatus.ENDED,
                    ended_at=utcnow(),
                    end_reason=END_REASON_SERVER_RESTART,
                )
            )
            await db.commit()

        closed = result.rowcount or 0
        if closed:
            logger.warning(f"[CallRecords] Closed {closed} orphaned call record(s)")
        return closed


async def list_calls(db: AsyncSession, user_id: Optional[str] = None, limit: int = 50) -> List[Call]:
    stmt = select(Call)
    if user_id:
        stmt = stmt.where(or_(Call.caller_user_id == user_id, Call.callee_user_id == user_id))

    result = await db.execute(stmt.order_by(Call.started_at.desc()).limit(limit))
    return list(result.scalars().all())
