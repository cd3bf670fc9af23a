"""
Call Session Table

In-memory map from call id to the live CallSession. Only sessions in an
active status are held; terminal sessions are removed by the controller.
"""
from typing import Dict, List, Optional
import logging

from .session import CallSession
from .exceptions import CallNotFoundError, TargetBusyError

logger = logging.getLogger(__name__)


class CallSessionTable:

    def __init__(self):
        self._sessions: Dict[str, CallSession] = {}

    def add(self, session: CallSession) -> CallSession:
        """
        Insert a new session.

        Raises:
            TargetBusyError if a live session already links the same two connections
        """
        if self.find_by_pair(session.caller.connection_handle, session.callee.connection_handle):
            raise TargetBusyError("A call between these connections is already in progress")
        self._sessions[session.call_id] = session
        logger.info(
            f"[Calls] {session.call_id} added: {session.caller.user_id} -> {session.callee.user_id}"
        )
        return session

    def get(self, call_id: str) -> Optional[CallSession]:
        return self._sessions.get(call_id)

    def require(self, call_id: str) -> CallSession:
        session = self._sessions.get(call_id)
        if session is None:
            raise CallNotFoundError(f"Call {call_id} not found")
        return session

    def remove(self, call_id: str) -> Optional[CallSession]:
        session = self._sessions.pop(call_id, None)
        if session:
            session.cancel_expiry()
            logger.info(f"[Calls] {call_id} removed ({session.status.value})")
        return session

    def find_by_pair(self, handle_a: str, handle_b: str) -> Optional[CallSession]:
        pair = frozenset({handle_a, handle_b})
        for session in self._sessions.values():
            if session.handles == pair:
                return session
        return None

    def find_by_handle(self, connection_handle: str) -> List[CallSession]:
        return [s for s in self._sessions.values() if s.involves(connection_handle)]

    def is_busy(self, connection_handle: str) -> bool:
        return any(s.involves(connection_handle) for s in self._sessions.values())

    def all(self) -> List[CallSession]:
        return list(self._sessions.values())

    def __contains__(self, call_id: str) -> bool:
        return call_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
