"""
WebSocket Router - Real-time Calling Endpoint

This is the thin routing layer that hands each socket to a
CallOrchestrator bound to the application's CallController.
"""
from fastapi import APIRouter, WebSocket

from app.services.session import CallController, CallOrchestrator

router = APIRouter()


def get_call_controller(websocket: WebSocket) -> CallController:
    return websocket.app.state.call_controller


@router.websocket("/ws")
async def ws_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for presence and call signaling.

    Every frame is a JSON object with a ``type`` naming the event.

    Client -> server:
        - user-joined, get-available-users
        - initiate-call, accept-call, reject-call, end-call
        - offer, answer, ice-candidate (relayed to the other party)
        - get-active-calls (admins), heartbeat, ping

    Server -> client:
        - your-info, available-users, user-disconnected
        - call-initiated, incoming-call, call-accepted, call-rejected, call-ended
        - offer, answer, ice-candidate, call-error
        - user-status-update, new-call, call-status-update, active-calls (admins)
    """
    orchestrator = CallOrchestrator(
        websocket=websocket,
        controller=get_call_controller(websocket),
    )
    await orchestrator.run()
