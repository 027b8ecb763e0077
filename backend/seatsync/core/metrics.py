"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Seat command metrics
seat_commands = Counter(
    'seat_commands_total',
    'Seat block/release commands',
    ['action', 'outcome']  # block/release; succeeded, failed, rejected, dropped
)

remote_write_latency = Histogram(
    'seat_remote_write_latency_seconds',
    'Latency of reservation writes against the remote store',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# Change feed metrics
feed_events = Counter(
    'seat_feed_events_total',
    'Change feed events received',
    ['kind']  # reservation_upserted, reservation_deleted, booking_changed, malformed
)

feed_connected = Gauge(
    'seat_feed_connected_sessions',
    'Sessions whose change feed is currently connected'
)

# Reconciliation metrics
reloads = Counter(
    'seat_inventory_reloads_total',
    'Full seat inventory reloads',
    ['outcome']  # success, error
)

active_sessions = Gauge(
    'seat_sync_active_sessions',
    'Open trip seat sessions'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_seat_command(action: str, outcome: str):
    """Record seat command. Outcome: succeeded, failed, rejected, dropped"""
    seat_commands.labels(action=action, outcome=outcome).inc()


def record_feed_event(kind: str):
    feed_events.labels(kind=kind).inc()


def record_reload(success: bool):
    """Record a full reload attempt."""
    outcome = "success" if success else "error"
    reloads.labels(outcome=outcome).inc()
