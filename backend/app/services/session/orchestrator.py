import json
import logging

from fastapi import WebSocket, WebSocketDisconnect

from app.services.session.controller import CallController

logger = logging.getLogger(__name__)


class CallOrchestrator:
    """
    Drives one calling WebSocket from accept to close.
    Handles:
    - Handle allocation and registration with the ConnectionManager
    - In-order reading of frames, one event completed before the next is read
    - Cleanup on disconnect, however the socket ends
    """

    def __init__(self, websocket: WebSocket, controller: CallController):
        self.websocket = websocket
        self.controller = controller
        self.handle = None

    async def run(self):
        """
        Main entry point for handling a WebSocket connection.
        """
        await self.websocket.accept()
        conn = self.controller.connections.connect(self.websocket)
        self.handle = conn.handle

        try:
            await self._message_loop()
        finally:
            await self.controller.disconnect(self.handle)

    async def _message_loop(self):
        try:
            while True:
                text = await self.websocket.receive_text()
                await self._handle_text_message(text)

        except WebSocketDisconnect:
            logger.info(f"[Orchestrator] Connection {self.handle} disconnected")

        except Exception as e:
            # Socket closed from our side (replaced login) or transport failure
            logger.info(f"[Orchestrator] Connection {self.handle} ended: {e}")

    async def _handle_text_message(self, text: str):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            logger.warning(f"[Orchestrator] Invalid JSON received from {self.handle}")
            data = None

        await self.controller.handle_frame(self.handle, data)
