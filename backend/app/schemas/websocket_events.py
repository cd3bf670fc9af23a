"""
WebSocket Event Schemas

Pydantic models for every event exchanged over the calling socket.

Every frame is a JSON object whose ``type`` names the event; the remaining
fields sit beside it using camelCase names on the wire. Inbound frames are
parsed through a discriminated union so nothing untyped reaches the
controller. Outbound messages are built from the models below and turned
into dicts with ``to_wire``.
"""

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for all wire models: camelCase aliases, snake_case attributes."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Inbound events (client -> server)
# =============================================================================

class UserJoinedEvent(WireModel):
    """Client announces who it is."""
    type: Literal["user-joined"] = "user-joined"
    id: str = Field(min_length=1)
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    role: Literal["doctor", "employee", "admin"]

    @property
    def announced_name(self) -> Optional[str]:
        return self.name or self.username or self.email


class GetAvailableUsersEvent(WireModel):
    type: Literal["get-available-users"] = "get-available-users"


class InitiateCallEvent(WireModel):
    type: Literal["initiate-call"] = "initiate-call"
    caller_id: str = Field(min_length=1)
    callee_id: str = Field(min_length=1)
    caller_name: Optional[str] = None
    signal: Any = None


class AcceptCallEvent(WireModel):
    type: Literal["accept-call"] = "accept-call"
    call_id: str = Field(min_length=1)
    signal: Any = None


class RejectCallEvent(WireModel):
    type: Literal["reject-call"] = "reject-call"
    call_id: str = Field(min_length=1)


class EndCallEvent(WireModel):
    type: Literal["end-call"] = "end-call"
    call_id: str = Field(min_length=1)


class RelayEvent(WireModel):
    """Session-negotiation payload to forward to the other party of a call."""
    type: Literal["offer", "answer", "ice-candidate"]
    call_id: str = Field(min_length=1)
    target: str = Field(min_length=1)
    payload: Any = None


class GetActiveCallsEvent(WireModel):
    """Admin-only snapshot of live calls."""
    type: Literal["get-active-calls"] = "get-active-calls"


class HeartbeatEvent(WireModel):
    """Client heartbeat to keep presence fresh."""
    type: Literal["heartbeat"] = "heartbeat"


class PingEvent(WireModel):
    """Simple ping for latency check."""
    type: Literal["ping"] = "ping"


InboundEvent = Annotated[
    Union[
        UserJoinedEvent,
        GetAvailableUsersEvent,
        InitiateCallEvent,
        AcceptCallEvent,
        RejectCallEvent,
        EndCallEvent,
        RelayEvent,
        GetActiveCallsEvent,
        HeartbeatEvent,
        PingEvent,
    ],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundEvent)


def parse_inbound_event(data: Any) -> InboundEvent:
    """
    Validate a decoded JSON frame into one of the inbound event models.

    Raises:
        pydantic.ValidationError if the frame is not a known, well-formed event
    """
    return _inbound_adapter.validate_python(data)


# =============================================================================
# Outbound messages (server -> client)
# =============================================================================

class ParticipantInfo(WireModel):
    id: str
    name: str
    role: str
    socket_id: str


class CallPartyInfo(WireModel):
    user_id: str
    name: str
    connection_handle: str


class CallSessionView(WireModel):
    call_id: str
    caller: CallPartyInfo
    callee: CallPartyInfo
    status: str
    started_at: datetime
    accepted_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None


class YourInfoMessage(ParticipantInfo):
    type: Literal["your-info"] = "your-info"


class AvailableUsersMessage(WireModel):
    type: Literal["available-users"] = "available-users"
    users: List[ParticipantInfo]


class UserDisconnectedMessage(ParticipantInfo):
    type: Literal["user-disconnected"] = "user-disconnected"


class IncomingCallMessage(WireModel):
    type: Literal["incoming-call"] = "incoming-call"
    call_id: str
    caller: CallPartyInfo
    signal: Any = None


class CallInitiatedMessage(WireModel):
    """Acknowledges initiate-call to the caller with the new call id."""
    type: Literal["call-initiated"] = "call-initiated"
    call_id: str
    callee: CallPartyInfo


class CallAcceptedMessage(WireModel):
    type: Literal["call-accepted"] = "call-accepted"
    call_id: str
    accepted_at: datetime
    signal: Any = None


class CallRejectedMessage(WireModel):
    type: Literal["call-rejected"] = "call-rejected"
    call_id: str


class CallEndedMessage(WireModel):
    type: Literal["call-ended"] = "call-ended"
    call_id: str
    reason: str
    duration_seconds: Optional[int] = None


class RelayMessage(WireModel):
    type: Literal["offer", "answer", "ice-candidate"]
    call_id: str
    sender: str = Field(alias="from")
    payload: Any = None


class CallErrorMessage(WireModel):
    type: Literal["call-error"] = "call-error"
    code: str
    message: str
    event: Optional[str] = None


class UserStatusUpdateMessage(WireModel):
    type: Literal["user-status-update"] = "user-status-update"
    user_id: str
    username: str
    role: str
    is_online: bool


class NewCallMessage(WireModel):
    type: Literal["new-call"] = "new-call"
    call: CallSessionView


class CallStatusUpdateMessage(WireModel):
    type: Literal["call-status-update"] = "call-status-update"
    call: CallSessionView


class ActiveCallsMessage(WireModel):
    type: Literal["active-calls"] = "active-calls"
    calls: List[CallSessionView]


class HeartbeatAckMessage(WireModel):
    type: Literal["heartbeat-ack"] = "heartbeat-ack"


class PongMessage(WireModel):
    type: Literal["pong"] = "pong"


def to_wire(message: WireModel) -> dict:
    """Serialize an outbound message to the JSON-ready dict sent on the socket."""
    return message.model_dump(by_alias=True, mode="json")
