"""
Connection Manager

Transport bookkeeping for the calling socket:
- Handle allocation for accepted WebSockets
- Delivery of outbound messages to one or many handles
- Server-initiated close (stale duplicate logins)

It knows nothing about users or calls; the controller decides who
receives what.
"""
from typing import Dict, Iterable, Optional
import logging
import uuid

from fastapi import WebSocket

from app.config.settings import settings
from app.schemas.websocket_events import WireModel, to_wire
from .models import ClientConnection

logger = logging.getLogger(__name__)


def new_connection_handle() -> str:
    return uuid.uuid4().hex


class ConnectionManager:
    """Connection handle -> ClientConnection."""

    def __init__(self, send_timeout: Optional[float] = None):
        self._connections: Dict[str, ClientConnection] = {}
        self.send_timeout = settings.SEND_TIMEOUT_SECONDS if send_timeout is None else send_timeout

    # === Core Connection Methods ===

    def connect(self, websocket: WebSocket, handle: Optional[str] = None) -> ClientConnection:
        """Register an accepted WebSocket and give it a fresh handle."""
        conn = ClientConnection(websocket, handle or new_connection_handle(), self.send_timeout)
        self._connections[conn.handle] = conn
        logger.info(f"Client connected: {conn.handle}")
        return conn

    def disconnect(self, handle: str) -> Optional[ClientConnection]:
        conn = self._connections.pop(handle, None)
        if conn:
            logger.info(f"Client disconnected: {handle}")
        return conn

    async def close(self, handle: str, code: int = 1000, reason: str = "") -> bool:
        """Close a connection from the server side. Its socket loop performs the cleanup."""
        conn = self._connections.get(handle)
        if not conn:
            return False
        await conn.close(code=code, reason=reason)
        return True

    # === Send Methods ===

    async def send(self, handle: str, message: WireModel) -> bool:
        """Send a message to one connection. Unknown or dead handles return False."""
        conn = self._connections.get(handle)
        if not conn or conn.is_closing:
            logger.debug(f"Dropping {getattr(message, 'type', '?')} for unknown handle {handle}")
            return False
        return await conn.send_json(to_wire(message))

    async def broadcast(self, handles: Iterable[str], message: WireModel) -> int:
        """Send the same message to several connections."""
        payload = to_wire(message)
        sent_count = 0
        for handle in list(handles):
            conn = self._connections.get(handle)
            if conn and not conn.is_closing and await conn.send_json(payload):
                sent_count += 1
        return sent_count

    # === Query Methods ===

    def is_connected(self, handle: str) -> bool:
        return handle in self._connections

    def get_total_connections(self) -> int:
        """Get total number of active connections."""
        return len(self._connections)
