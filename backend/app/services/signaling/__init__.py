"""
Signaling Module

Pass-through of session-negotiation messages between call parties.
"""
from .relay import SignalingRelay

__all__ = ["SignalingRelay"]
