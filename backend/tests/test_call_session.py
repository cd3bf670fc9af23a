from datetime import timedelta

import pytest

from app.models.call import CallStatus
from app.services.call import (
    CallNotFoundError,
    CallParty,
    CallSession,
    CallSessionTable,
    InvalidStateError,
    TargetBusyError,
)


def make_session(caller_handle: str = "hc", callee_handle: str = "hd") -> CallSession:
    return CallSession(
        caller=CallParty("e1", "Employee", caller_handle),
        callee=CallParty("d1", "Doctor", callee_handle),
    )


def test_new_session_starts_initiated_with_unique_id():
    first, second = make_session(), make_session()

    assert first.status == CallStatus.INITIATED
    assert first.call_id != second.call_id
    assert first.duration_seconds is None


def test_accept_then_end_records_duration_from_acceptance():
    session = make_session()
    session.transition(CallStatus.ACCEPTED)
    accepted_at = session.accepted_at

    session.transition(CallStatus.ENDED, now=accepted_at + timedelta(seconds=42, milliseconds=300))

    assert session.status == CallStatus.ENDED
    assert session.duration_seconds == 42


def test_end_before_accept_has_no_duration():
    session = make_session()
    session.transition(CallStatus.ENDED, reason="hangup")

    assert session.ended_at is not None
    assert session.duration_seconds is None
    assert session.end_reason == "hangup"


@pytest.mark.parametrize("path", [
    [CallStatus.ACCEPTED, CallStatus.ACCEPTED],
    [CallStatus.ACCEPTED, CallStatus.REJECTED],
    [CallStatus.ACCEPTED, CallStatus.EXPIRED],
    [CallStatus.REJECTED, CallStatus.ENDED],
    [CallStatus.ENDED, CallStatus.ENDED],
    [CallStatus.EXPIRED, CallStatus.ACCEPTED],
])
def test_unreachable_transitions_are_refused(path):
    session = make_session()
    *allowed, refused = path
    for status in allowed:
        session.transition(status)

    with pytest.raises(InvalidStateError):
        session.transition(refused)


def test_other_party_and_involvement():
    session = make_session("hc", "hd")

    assert session.other_party("hc").connection_handle == "hd"
    assert session.other_party("hd").connection_handle == "hc"
    assert session.involves("hc") and not session.involves("hx")


def test_table_refuses_second_session_for_same_pair():
    table = CallSessionTable()
    table.add(make_session("hc", "hd"))

    with pytest.raises(TargetBusyError):
        table.add(make_session("hd", "hc"))
    assert len(table) == 1


def test_table_lookup_and_removal():
    table = CallSessionTable()
    session = table.add(make_session("hc", "hd"))

    assert table.require(session.call_id) is session
    assert table.find_by_handle("hd") == [session]
    assert table.is_busy("hc")

    table.remove(session.call_id)

    assert not table.is_busy("hc")
    with pytest.raises(CallNotFoundError):
        table.require(session.call_id)


def test_record_snapshot_is_independent_of_later_changes():
    session = make_session()
    record = session.to_record()
    session.transition(CallStatus.ACCEPTED)

    assert record.status == CallStatus.INITIATED
    assert record.accepted_at is None
