import asyncio
from typing import Dict, List, Optional, Tuple

from app.services.call.records import CallRecord
from app.services.directory import DirectoryUser
from app.services.session import CallController


class FakeWebSocket:
    """Stands in for a Starlette WebSocket; records what the server sends."""

    def __init__(self):
        self.sent: List[dict] = []
        self.closed = False
        self.close_code: Optional[int] = None

    async def send_json(self, data: dict):
        if self.closed:
            raise RuntimeError("WebSocket is closed")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed = True
        self.close_code = code

    def of_type(self, message_type: str) -> List[dict]:
        return [m for m in self.sent if m["type"] == message_type]

    def last(self, message_type: str) -> dict:
        matches = self.of_type(message_type)
        assert matches, f"no {message_type} message in {[m['type'] for m in self.sent]}"
        return matches[-1]

    def clear(self):
        self.sent.clear()


class StuckWebSocket(FakeWebSocket):
    """A peer that never drains its socket: every send hangs."""

    async def send_json(self, data: dict):
        await asyncio.Event().wait()


class RecordingSink:
    """Call Record Sink that keeps every record in memory."""

    def __init__(self, fail: bool = False):
        self.records: List[CallRecord] = []
        self.fail = fail

    async def persist_call_outcome(self, record: CallRecord) -> None:
        if self.fail:
            raise ConnectionError("sink unavailable")
        self.records.append(record)

    def statuses(self, call_id: str) -> List[str]:
        return [r.status.value for r in self.records if r.call_id == call_id]


class FakeDirectory:
    """User Directory with canned profiles; records presence writes."""

    def __init__(self, users: Optional[Dict[str, DirectoryUser]] = None):
        self.users = users or {}
        self.online: Dict[str, str] = {}
        self.touched: List[str] = []

    async def find_user_by_id(self, user_id: str) -> Optional[DirectoryUser]:
        return self.users.get(user_id)

    async def mark_online(self, user_id: str, connection_handle: str) -> None:
        self.online[user_id] = connection_handle

    async def mark_offline(self, user_id: str, connection_handle: str) -> None:
        if self.online.get(user_id) == connection_handle:
            del self.online[user_id]

    async def touch(self, user_id: str) -> None:
        self.touched.append(user_id)


def open_connection(controller: CallController) -> Tuple[str, FakeWebSocket]:
    ws = FakeWebSocket()
    conn = controller.connections.connect(ws)
    return conn.handle, ws


async def join(controller: CallController, user_id: str, role: str, name: Optional[str] = None) -> Tuple[str, FakeWebSocket]:
    handle, ws = open_connection(controller)
    await controller.handle_frame(handle, {
        "type": "user-joined",
        "id": user_id,
        "name": name or user_id.title(),
        "role": role,
    })
    return handle, ws


async def start_call(controller: CallController, caller: str, callee_id: str, caller_id: str) -> None:
    await controller.handle_frame(caller, {
        "type": "initiate-call",
        "callerId": caller_id,
        "calleeId": callee_id,
        "callerName": caller_id.title(),
    })
