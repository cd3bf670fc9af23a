"""
Cleanup script for call records stuck in an active status.

The server closes these itself on startup; run this when a crashed
instance will not be restarted soon and the history should be accurate.
"""
import asyncio
import sys
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent.parent / "backend"
sys.path.insert(0, str(backend_path))

from sqlalchemy import select
from app.models.database import AsyncSessionLocal
from app.models.call import ACTIVE_CALL_STATUSES, Call
from app.services.call import SqlCallRecordSink


async def cleanup_active_calls():
    """End all initiated and accepted call records."""
    print("🔍 Searching for active call records...")

    async with AsyncSessionLocal() as db:
        result = await db.execute(
            select(Call).where(Call.status.in_(ACTIVE_CALL_STATUSES))
        )
        calls = result.scalars().all()

    if not calls:
        print("✅ No active call records found. Database is clean!")
        return

    print(f"📞 Found {len(calls)} stuck call(s):")
    for call in calls:
        print(f"  - Call ID: {call.id}")
        print(f"    {call.caller_user_id} -> {call.callee_user_id}")
        print(f"    Status: {call.status.value}")
        print(f"    Started: {call.started_at}")

    closed = await SqlCallRecordSink().close_orphaned_calls()
    print(f"✅ Successfully ended {closed} call record(s)")


if __name__ == "__main__":
    print("🧹 Call Cleanup Script")
    print("=" * 50)
    asyncio.run(cleanup_active_calls())
