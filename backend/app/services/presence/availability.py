"""
Availability Index

Role-paired view over the Presence Registry: doctors see online employees,
employees see online doctors, admins see every non-admin participant.
"""
from typing import List, Optional

from app.config.constants import COUNTERPART_ROLES, ROLE_ADMIN
from app.schemas.websocket_events import ParticipantInfo
from .registry import Participant, PresenceRegistry


def counterpart_role(role: str) -> Optional[str]:
    """The role whose members form this role's calling pool, None for admins."""
    return COUNTERPART_ROLES.get(role)


def can_call(caller_role: str, callee_role: str) -> bool:
    return counterpart_role(caller_role) == callee_role


class AvailabilityIndex:
    """Derived, read-only view; recomputed on every query."""

    def __init__(self, registry: PresenceRegistry):
        self.registry = registry

    def available_for(self, role: str) -> List[ParticipantInfo]:
        """Who a participant of ``role`` can see as available."""
        if role == ROLE_ADMIN:
            return [p.to_info() for p in self.registry if p.role != ROLE_ADMIN]

        target = counterpart_role(role)
        if target is None:
            return []
        return [p.to_info() for p in self.registry.list_by_role(target)]

    def audience_for(self, participant: Participant) -> List[str]:
        """Connection handles that must be told when ``participant`` comes or goes."""
        target = counterpart_role(participant.role)
        if target is None:
            return []
        return self.registry.handles_for_role(target)

    def admin_handles(self) -> List[str]:
        return self.registry.handles_for_role(ROLE_ADMIN)
