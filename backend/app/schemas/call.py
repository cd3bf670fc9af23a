from typing import List, Optional
from pydantic import BaseModel


class CallHistoryItem(BaseModel):
    call_id: str
    caller_user_id: str
    callee_user_id: str
    status: str
    end_reason: Optional[str]
    started_at: Optional[str]
    accepted_at: Optional[str]
    ended_at: Optional[str]
    duration_seconds: Optional[int]


class CallHistoryResponse(BaseModel):
    calls: List[CallHistoryItem]
