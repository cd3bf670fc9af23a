"""
Connection Management Module

Live WebSocket connections addressed by opaque connection handles.
"""
from .models import ClientConnection
from .manager import ConnectionManager, new_connection_handle

__all__ = [
    "ClientConnection",
    "ConnectionManager",
    "new_connection_handle",
]
