"""
Calls API - read-only call history

Lists the records written by the Call Record Sink.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import CALL_HISTORY_DEFAULT_LIMIT, CALL_HISTORY_MAX_LIMIT
from app.models.database import get_db
from app.schemas.call import CallHistoryItem, CallHistoryResponse
from app.services.call import list_calls

router = APIRouter()


@router.get("/calls", response_model=CallHistoryResponse)
async def get_calls(
    user_id: Optional[str] = Query(None),
    limit: int = Query(CALL_HISTORY_DEFAULT_LIMIT, ge=1, le=CALL_HISTORY_MAX_LIMIT),
    db: AsyncSession = Depends(get_db),
):
    """
    Call records, newest first.

    Query Parameters:
        user_id: only calls where this user was caller or callee
        limit: maximum number of records
    """
    calls = await list_calls(db, user_id=user_id, limit=limit)

    return CallHistoryResponse(calls=[
        CallHistoryItem(
            call_id=c.id,
            caller_user_id=c.caller_user_id,
            callee_user_id=c.callee_user_id,
            status=c.status.value,
            end_reason=c.end_reason,
            started_at=c.started_at.isoformat() if c.started_at else None,
            accepted_at=c.accepted_at.isoformat() if c.accepted_at else None,
            ended_at=c.ended_at.isoformat() if c.ended_at else None,
            duration_seconds=c.duration_seconds,
        )
        for c in calls
    ])
