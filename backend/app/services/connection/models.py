"""
Connection Models

Data classes representing live WebSocket connections.
"""
from datetime import datetime
from typing import Dict, Any
import asyncio
import logging

from fastapi import WebSocket

from app.services.clock import utcnow

logger = logging.getLogger(__name__)

# Close code for a peer that stopped reading its socket
CLOSE_CODE_SEND_TIMEOUT = 1011


class ClientConnection:
    """
    One live client transport session, addressed by its opaque handle.

    Every send and close is bounded by ``send_timeout``. A peer that does not
    drain its socket in time is closed and skipped from then on, so the
    controller never waits on it.
    """

    def __init__(self, websocket: WebSocket, handle: str, send_timeout: float = 5.0):
        self.websocket = websocket
        self.handle = handle
        self.send_timeout = send_timeout
        self.connected_at: datetime = utcnow()
        self.is_closing = False

    async def send_json(self, data: Dict[str, Any]) -> bool:
        """Send JSON message to this connection."""
        try:
            await asyncio.wait_for(self.websocket.send_json(data), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.error(f"Send to {self.handle} timed out after {self.send_timeout}s, closing")
            await self.close(code=CLOSE_CODE_SEND_TIMEOUT, reason="Send timed out")
            return False
        except Exception as e:
            logger.error(f"Error sending JSON to {self.handle}: {e}")
            return False

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.is_closing:
            return
        self.is_closing = True
        try:
            await asyncio.wait_for(
                self.websocket.close(code=code, reason=reason), timeout=self.send_timeout
            )
        except Exception as e:
            # Already closed by the peer, or the peer is not draining
            logger.debug(f"Close of {self.handle} failed: {e!r}")
