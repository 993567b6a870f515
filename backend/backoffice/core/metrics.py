"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from prometheus_client import Counter, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_mutations = Counter(
    'booking_mutations_total',
    'Booking create/update/delete attempts',
    ['action', 'outcome']  # outcome: success, forbidden, not_found
)

# Edit-permission handshake
edit_request_transitions = Counter(
    'edit_request_transitions_total',
    'Edit request state transitions',
    ['transition']  # created, duplicate, approved, rejected, conflict
)

notifications_created = Counter(
    'notifications_created_total',
    'Persisted notifications',
    ['type']
)

# Realtime channel
realtime_events = Counter(
    'realtime_events_total',
    'Realtime events by outcome',
    ['event', 'outcome']  # outcome: published, failed
)

realtime_dropped = Counter(
    'realtime_dropped_total',
    'Realtime frames dropped because a subscriber queue was full',
)

realtime_connections = Gauge(
    'realtime_connections',
    'Open realtime websocket connections'
)

redis_relay_errors = Counter(
    'redis_relay_errors_total',
    'Redis relay publish/listen errors'
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


def record_booking_mutation(action: str, outcome: str):
    """Record a booking mutation. Outcome: success, forbidden, not_found"""
    booking_mutations.labels(action=action, outcome=outcome).inc()


def record_edit_transition(transition: str):
    edit_request_transitions.labels(transition=transition).inc()


def record_notification(notification_type: str):
    notifications_created.labels(type=notification_type).inc()


def record_realtime_event(event: str, published: bool):
    """Record a realtime publish attempt."""
    outcome = "published" if published else "failed"
    realtime_events.labels(event=event, outcome=outcome).inc()
