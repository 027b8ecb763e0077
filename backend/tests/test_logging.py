"""
Tests for log context helpers.
"""

import structlog

from seatsync.core.logging import _enum_values, trip_context
from seatsync.domain.events import FeedStatus


def test_trip_context_replaces_and_restores_request_context():
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id="abc123")

    with trip_context("trip-1", "vessel-1"):
        assert structlog.contextvars.get_contextvars() == {"trip_id": "trip-1", "vessel_id": "vessel-1"}

    assert structlog.contextvars.get_contextvars() == {"request_id": "abc123"}
    structlog.contextvars.clear_contextvars()


def test_enum_values_are_rendered_plain():
    event_dict = _enum_values(None, "info", {"event": "feed_status_changed", "status": FeedStatus.CONNECTED})
    assert event_dict["status"] == "connected"
