from datetime import datetime, timedelta

import pytest
from fakeredis import aioredis

from app.models import ACTIVE_CALL_STATUSES, Call, CallStatus, User
from app.services.call import CallRecord, SqlCallRecordSink
from app.services.directory import SqlUserDirectory, presence_key

pytestmark = pytest.mark.asyncio


def make_record(call_id="call-1", status=CallStatus.INITIATED, **overrides):
    values = dict(
        call_id=call_id,
        caller_user_id="e1",
        callee_user_id="d1",
        status=status,
        started_at=datetime(2024, 5, 1, 9, 0, 0),
    )
    values.update(overrides)
    return CallRecord(**values)


# === Call Record Sink ===

async def test_persist_upserts_by_call_id(async_db):
    sink = SqlCallRecordSink(session_factory=async_db)
    started = datetime(2024, 5, 1, 9, 0, 0)

    await sink.persist_call_outcome(make_record())
    await sink.persist_call_outcome(make_record(
        status=CallStatus.ENDED,
        accepted_at=started + timedelta(seconds=5),
        ended_at=started + timedelta(seconds=47),
        duration_seconds=42,
        end_reason="hangup",
    ))

    async with async_db() as db:
        call = await db.get(Call, "call-1")

    assert len(await sink.list_calls()) == 1
    assert call.status == CallStatus.ENDED
    assert call.duration_seconds == 42
    assert call.end_reason == "hangup"
    assert call.status not in ACTIVE_CALL_STATUSES


async def test_list_calls_filters_by_user_newest_first(async_db):
    sink = SqlCallRecordSink(session_factory=async_db)
    base = datetime(2024, 5, 1, 9, 0, 0)
    await sink.persist_call_outcome(make_record("c-old", started_at=base))
    await sink.persist_call_outcome(make_record("c-new", started_at=base + timedelta(hours=1)))
    await sink.persist_call_outcome(make_record("c-other", caller_user_id="e2", callee_user_id="d2"))

    calls = await sink.list_calls(user_id="d1")

    assert [c.id for c in calls] == ["c-new", "c-old"]
    assert len(await sink.list_calls(limit=1)) == 1


async def test_orphaned_active_calls_closed_on_startup(async_db):
    sink = SqlCallRecordSink(session_factory=async_db)
    await sink.persist_call_outcome(make_record("c-ringing"))
    await sink.persist_call_outcome(make_record("c-talking", status=CallStatus.ACCEPTED))
    await sink.persist_call_outcome(make_record("c-done", status=CallStatus.REJECTED, end_reason="rejected"))

    closed = await sink.close_orphaned_calls()

    assert closed == 2
    async with async_db() as db:
        ringing = await db.get(Call, "c-ringing")
        done = await db.get(Call, "c-done")
    assert ringing.status == CallStatus.ENDED
    assert ringing.end_reason == "server_restart"
    assert ringing.ended_at is not None
    assert done.status == CallStatus.REJECTED


# === User Directory ===

@pytest.fixture
async def fake_redis():
    redis = aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()


@pytest.fixture
async def user_directory(async_db, fake_redis):
    async def get_fake_redis():
        return fake_redis

    async with async_db() as db:
        db.add(User(id="d1", email="doc@example.com", full_name="Dr. Levi", role="doctor"))
        db.add(User(id="e1", username="emp", role="employee"))
        await db.commit()

    return SqlUserDirectory(session_factory=async_db, redis_getter=get_fake_redis, presence_ttl=60)


async def test_find_user_by_id(user_directory):
    doctor = await user_directory.find_user_by_id("d1")
    employee = await user_directory.find_user_by_id("e1")

    assert doctor.role == "doctor"
    assert doctor.display_name == "Dr. Levi"
    assert employee.display_name == "emp"
    assert await user_directory.find_user_by_id("nobody") is None


async def test_mark_online_and_offline(user_directory, fake_redis, async_db):
    await user_directory.mark_online("d1", "h1")

    assert await fake_redis.get(presence_key("d1")) == "h1"
    assert 0 < await fake_redis.ttl(presence_key("d1")) <= 60
    async with async_db() as db:
        user = await db.get(User, "d1")
        assert user.is_online and user.socket_id == "h1"

    await user_directory.mark_offline("d1", "h1")

    assert not await fake_redis.exists(presence_key("d1"))
    async with async_db() as db:
        user = await db.get(User, "d1")
        assert not user.is_online and user.socket_id is None


async def test_late_offline_from_replaced_connection_is_ignored(user_directory, fake_redis, async_db):
    await user_directory.mark_online("d1", "h-old")
    await user_directory.mark_online("d1", "h-new")

    await user_directory.mark_offline("d1", "h-old")

    assert await fake_redis.get(presence_key("d1")) == "h-new"
    async with async_db() as db:
        user = await db.get(User, "d1")
        assert user.is_online and user.socket_id == "h-new"


async def test_touch_refreshes_ttl(user_directory, fake_redis):
    await user_directory.mark_online("e1", "h1")
    await fake_redis.expire(presence_key("e1"), 5)

    await user_directory.touch("e1")

    assert await fake_redis.ttl(presence_key("e1")) > 5


async def test_unknown_user_only_gets_redis_flag(user_directory, fake_redis):
    await user_directory.mark_online("ghost", "h9")

    assert await fake_redis.get(presence_key("ghost")) == "h9"
