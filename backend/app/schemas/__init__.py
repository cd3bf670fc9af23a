"""
Schemas Package

Pydantic models for the REST API and WebSocket events.
"""

from app.schemas.websocket_events import (
    WireModel,
    InboundEvent,
    parse_inbound_event,
    to_wire,
)
from app.schemas.call import CallHistoryItem, CallHistoryResponse

__all__ = [
    "WireModel",
    "InboundEvent",
    "parse_inbound_event",
    "to_wire",
    "CallHistoryItem",
    "CallHistoryResponse",
]
