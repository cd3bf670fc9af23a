"""
Signaling Relay

Forwards offer / answer / ice-candidate payloads between the two parties
of a live call. Payloads are opaque and never inspected; the relay only
checks that the sender and the target really are the two ends of the
call named in the frame.
"""
from typing import Any
import logging

from app.config.constants import RELAY_KINDS
from app.schemas.websocket_events import RelayMessage
from app.services.call.exceptions import (
    InvalidStateError,
    NotAuthorizedError,
    TargetUnavailableError,
)
from app.services.call.table import CallSessionTable
from app.services.connection.manager import ConnectionManager

logger = logging.getLogger(__name__)


class SignalingRelay:

    def __init__(self, connections: ConnectionManager, calls: CallSessionTable):
        self.connections = connections
        self.calls = calls

    async def forward(
        self,
        kind: str,
        sender_handle: str,
        target_handle: str,
        payload: Any,
        call_id: str,
    ) -> bool:
        """
        Forward one negotiation message to ``target_handle``, tagged with the sender's handle.

        Raises:
            InvalidStateError for an unknown relay kind
            CallNotFoundError if ``call_id`` is not a live call
            NotAuthorizedError if sender and target are not the two parties of that call
            TargetUnavailableError if the target connection has gone away
        """
        if kind not in RELAY_KINDS:
            raise InvalidStateError(f"Unknown relay kind: {kind}")

        session = self.calls.require(call_id)

        if (
            sender_handle == target_handle
            or not session.involves(sender_handle)
            or not session.involves(target_handle)
        ):
            logger.warning(
                f"[Relay] Refused {kind} on {call_id}: {sender_handle} -> {target_handle}"
            )
            raise NotAuthorizedError("Sender and target are not the parties of this call")

        if not self.connections.is_connected(target_handle):
            raise TargetUnavailableError("Target connection is no longer live")

        message = RelayMessage(type=kind, call_id=call_id, sender=sender_handle, payload=payload)
        sent = await self.connections.send(target_handle, message)
        logger.debug(f"[Relay] {kind} {sender_handle} -> {target_handle} ({call_id}) sent={sent}")
        return sent
