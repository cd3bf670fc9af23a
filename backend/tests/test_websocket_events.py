import pytest
from pydantic import ValidationError

from app.schemas.websocket_events import (
    AcceptCallEvent,
    CallEndedMessage,
    CallErrorMessage,
    InitiateCallEvent,
    RelayEvent,
    RelayMessage,
    UserJoinedEvent,
    parse_inbound_event,
    to_wire,
)


def test_user_joined_announced_name_fallbacks():
    event = parse_inbound_event({"type": "user-joined", "id": "e1", "email": "e1@example.com", "role": "employee"})

    assert isinstance(event, UserJoinedEvent)
    assert event.announced_name == "e1@example.com"
    assert parse_inbound_event({"type": "user-joined", "id": "e1", "role": "doctor"}).announced_name is None


def test_camel_case_fields_are_read():
    event = parse_inbound_event({
        "type": "initiate-call",
        "callerId": "e1",
        "calleeId": "d1",
        "callerName": "Noa",
        "signal": {"sdp": "v=0"},
        "unknownExtra": True,
    })

    assert isinstance(event, InitiateCallEvent)
    assert (event.caller_id, event.callee_id, event.caller_name) == ("e1", "d1", "Noa")
    assert event.signal == {"sdp": "v=0"}


@pytest.mark.parametrize("kind", ["offer", "answer", "ice-candidate"])
def test_relay_kinds_share_one_event(kind):
    event = parse_inbound_event({"type": kind, "callId": "c1", "target": "h2", "payload": None})
    assert isinstance(event, RelayEvent)
    assert event.type == kind


@pytest.mark.parametrize("frame", [
    {"type": "user-joined", "id": "x", "role": "nurse"},
    {"type": "user-joined", "id": "", "role": "doctor"},
    {"type": "accept-call"},
    {"type": "offer", "callId": "c1"},
    {"type": "dance"},
    {"callId": "c1"},
    "accept-call",
    None,
])
def test_malformed_frames_fail_validation(frame):
    with pytest.raises(ValidationError):
        parse_inbound_event(frame)


def test_accept_call_signal_optional():
    event = parse_inbound_event({"type": "accept-call", "callId": "c1"})
    assert isinstance(event, AcceptCallEvent)
    assert event.signal is None


def test_outbound_messages_use_wire_names():
    assert to_wire(CallEndedMessage(call_id="c1", reason="hangup", duration_seconds=7)) == {
        "type": "call-ended", "callId": "c1", "reason": "hangup", "durationSeconds": 7,
    }
    assert to_wire(RelayMessage(type="answer", call_id="c1", sender="h1", payload={"a": 1})) == {
        "type": "answer", "callId": "c1", "from": "h1", "payload": {"a": 1},
    }
    assert to_wire(CallErrorMessage(code="TargetBusy", message="busy"))["event"] is None
