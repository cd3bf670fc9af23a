"""
Presence Registry

In-memory map from live connection handle to the participant announced on
it. Lives only as long as the process; the controller is its only writer.
"""
from dataclasses import dataclass, field
from datetime import datetime
from itertools import count
from typing import Dict, Iterator, Optional
import logging

from app.schemas.websocket_events import ParticipantInfo
from app.services.clock import utcnow

logger = logging.getLogger(__name__)

# Monotonic registration order, used for last-write-wins lookups
_registration_seq = count()


def next_registration_seq() -> int:
    return next(_registration_seq)


@dataclass
class Participant:
    """A registered user's presence record tied to one connection handle."""
    user_id: str
    display_name: str
    role: str
    connection_handle: str
    joined_at: datetime = field(default_factory=utcnow)
    seq: int = field(default_factory=next_registration_seq, repr=False)

    def to_info(self) -> ParticipantInfo:
        return ParticipantInfo(
            id=self.user_id,
            name=self.display_name,
            role=self.role,
            socket_id=self.connection_handle,
        )


class RoleView:
    """
    Lazy, restartable view of the participants holding one role.

    The registry contents are captured when the view is created; every
    iteration filters that snapshot again, so the view can be walked any
    number of times and never observes later registry changes.
    """

    def __init__(self, participants: list, role: str):
        self._participants = participants
        self.role = role

    def __iter__(self) -> Iterator[Participant]:
        return (p for p in self._participants if p.role == self.role)

    def __len__(self) -> int:
        return sum(1 for _ in self)


class PresenceRegistry:
    """Connection handle -> Participant."""

    def __init__(self):
        self._participants: Dict[str, Participant] = {}

    def register(self, connection_handle: str, participant: Participant) -> Optional[Participant]:
        """
        Insert or overwrite the entry for a connection.

        Returns:
            The participant previously registered on this handle, if any
        """
        previous = self._participants.get(connection_handle)
        self._participants[connection_handle] = participant
        logger.info(
            f"[Presence] {participant.role} {participant.user_id} registered on {connection_handle}"
        )
        return previous

    def unregister(self, connection_handle: str) -> Optional[Participant]:
        """Remove a connection's entry. Returns the removed participant or None if not found."""
        participant = self._participants.pop(connection_handle, None)
        if participant:
            logger.info(f"[Presence] {participant.user_id} unregistered from {connection_handle}")
        return participant

    def get(self, connection_handle: str) -> Optional[Participant]:
        return self._participants.get(connection_handle)

    def list_by_role(self, role: str) -> RoleView:
        return RoleView(list(self._participants.values()), role)

    def handles_for_role(self, role: str) -> list:
        return [p.connection_handle for p in self.list_by_role(role)]

    def find_by_user_id(self, user_id: str) -> Optional[Participant]:
        """Most recently registered live entry for a user (last write wins)."""
        matches = [p for p in self._participants.values() if p.user_id == user_id]
        if not matches:
            return None
        return max(matches, key=lambda p: p.seq)

    def handles_for_user(self, user_id: str) -> list:
        return [h for h, p in self._participants.items() if p.user_id == user_id]

    def __contains__(self, connection_handle: str) -> bool:
        return connection_handle in self._participants

    def __len__(self) -> int:
        return len(self._participants)

    def __iter__(self) -> Iterator[Participant]:
        return iter(list(self._participants.values()))
