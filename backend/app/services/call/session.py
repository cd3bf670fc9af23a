"""
Call Session - lifecycle record and state machine of one call attempt.

Allowed transitions:

    initiated -> accepted -> ended
    initiated -> rejected
    initiated -> ended      (caller hangs up, or disconnect)
    initiated -> expired    (invite timed out)

rejected, ended and expired are terminal.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, Optional
import asyncio
import uuid

from app.models.call import CallStatus
from app.schemas.websocket_events import CallPartyInfo, CallSessionView
from app.services.clock import utcnow
from .exceptions import InvalidStateError
from .records import CallRecord

TRANSITIONS: Dict[CallStatus, FrozenSet[CallStatus]] = {
    CallStatus.INITIATED: frozenset({
        CallStatus.ACCEPTED,
        CallStatus.REJECTED,
        CallStatus.ENDED,
        CallStatus.EXPIRED,
    }),
    CallStatus.ACCEPTED: frozenset({CallStatus.ENDED}),
    CallStatus.REJECTED: frozenset(),
    CallStatus.ENDED: frozenset(),
    CallStatus.EXPIRED: frozenset(),
}


def new_call_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class CallParty:
    user_id: str
    name: str
    connection_handle: str

    def to_info(self) -> CallPartyInfo:
        return CallPartyInfo(
            user_id=self.user_id,
            name=self.name,
            connection_handle=self.connection_handle,
        )


@dataclass
class CallSession:
    caller: CallParty
    callee: CallParty
    call_id: str = field(default_factory=new_call_id)
    status: CallStatus = CallStatus.INITIATED
    started_at: datetime = field(default_factory=utcnow)
    accepted_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    end_reason: Optional[str] = None
    expiry_task: Optional[asyncio.Task] = field(default=None, repr=False, compare=False)

    @property
    def handles(self) -> FrozenSet[str]:
        return frozenset({self.caller.connection_handle, self.callee.connection_handle})

    def involves(self, connection_handle: str) -> bool:
        return connection_handle in self.handles

    def other_party(self, connection_handle: str) -> CallParty:
        if connection_handle == self.caller.connection_handle:
            return self.callee
        return self.caller

    def transition(self, new_status: CallStatus, now: Optional[datetime] = None, reason: Optional[str] = None):
        """
        Apply one state-machine step.

        Raises:
            InvalidStateError if ``new_status`` is not reachable from the current status
        """
        if new_status not in TRANSITIONS[self.status]:
            raise InvalidStateError(
                f"Call {self.call_id} is {self.status.value}, cannot become {new_status.value}"
            )

        now = now or utcnow()
        self.status = new_status

        if new_status == CallStatus.ACCEPTED:
            self.accepted_at = now
            return

        self.ended_at = now
        self.end_reason = reason
        if new_status == CallStatus.ENDED and self.accepted_at is not None:
            self.duration_seconds = int((now - self.accepted_at).total_seconds())

    def cancel_expiry(self):
        if self.expiry_task is not None and not self.expiry_task.done():
            self.expiry_task.cancel()
        self.expiry_task = None

    def to_view(self) -> CallSessionView:
        return CallSessionView(
            call_id=self.call_id,
            caller=self.caller.to_info(),
            callee=self.callee.to_info(),
            status=self.status.value,
            started_at=self.started_at,
            accepted_at=self.accepted_at,
            ended_at=self.ended_at,
            duration_seconds=self.duration_seconds,
        )

    def to_record(self) -> CallRecord:
        return CallRecord(
            call_id=self.call_id,
            caller_user_id=self.caller.user_id,
            callee_user_id=self.callee.user_id,
            status=self.status,
            started_at=self.started_at,
            accepted_at=self.accepted_at,
            ended_at=self.ended_at,
            duration_seconds=self.duration_seconds,
            end_reason=self.end_reason,
        )
