"""Prometheus metrics instrumentation for the calling service.

Metrics are exposed via HTTP on ``settings.METRICS_PORT`` when configured.

Metrics exported:
- signaling_active_participants: Gauge of registered participants
- signaling_active_calls: Gauge of live call sessions
- signaling_calls_total: Counter of finished calls by outcome
- signaling_errors_total: Counter of domain errors reported to clients

Usage:
    from app.services.metrics import start_metrics_server, calls_total

    start_metrics_server(port=8001)
    calls_total.labels(outcome='ended').inc()
"""

import asyncio
import logging

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)

active_participants_gauge = Gauge(
    'signaling_active_participants',
    'Number of participants currently registered'
)

active_calls_gauge = Gauge(
    'signaling_active_calls',
    'Number of call sessions currently live'
)

calls_total = Counter(
    'signaling_calls_total',
    'Total calls that reached a terminal state',
    labelnames=['outcome']  # outcome: ended, rejected, expired, disconnect
)

errors_total = Counter(
    'signaling_errors_total',
    'Domain errors reported to clients',
    labelnames=['code']
)


def observe_registries(participant_count: int, call_count: int):
    active_participants_gauge.set(participant_count)
    active_calls_gauge.set(call_count)


def registry_sizes(controller) -> dict:
    """Current registry sizes for health endpoints; zeros before the controller exists."""
    if controller is None:
        return {"active_users": 0, "active_calls": 0, "total_connections": 0}
    return {
        "active_users": len(controller.presence),
        "active_calls": len(controller.calls),
        "total_connections": controller.connections.get_total_connections(),
    }


def start_metrics_server(port: int = 8001):
    """Start Prometheus metrics HTTP server."""
    try:
        start_http_server(port)
        logger.info(f"✅ Metrics server started on port {port}")
    except Exception as e:
        logger.error(f"❌ Failed to start metrics server: {e}")


async def log_stats_forever(controller, interval: int):
    """Background task: periodic one-line summary of the registries."""
    while True:
        await asyncio.sleep(interval)
        logger.info(
            f"📊 Active Users: {len(controller.presence)}, Active Calls: {len(controller.calls)}"
        )
