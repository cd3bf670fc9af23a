"""
Presence Module

Presence Registry and the Availability Index derived from it.
"""
from .registry import Participant, PresenceRegistry, RoleView, next_registration_seq
from .availability import AvailabilityIndex, counterpart_role, can_call

__all__ = [
    "Participant",
    "PresenceRegistry",
    "RoleView",
    "next_registration_seq",
    "AvailabilityIndex",
    "counterpart_role",
    "can_call",
]
