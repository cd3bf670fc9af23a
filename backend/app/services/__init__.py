"""Business Logic Services.

This package contains the service modules behind the calling socket.

Service Categories:
- Presence: who is connected, and who each role may call
- Call: Call session state machine, session table, durable records
- Signaling: offer/answer/ICE pass-through between call parties
- Connection: WebSocket connection management
- Session: the CallController and per-socket orchestration

External integrations:
- directory: user profiles and presence flags (database + Redis)
- metrics: Prometheus gauges/counters and periodic stats logging
"""
