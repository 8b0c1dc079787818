"""Metric definitions for the realtime hub."""

from __future__ import annotations

from .registry import registry


realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of websocket connections currently attached to the hub.",
)

realtime_registered_users = registry.gauge(
    "realtime_registered_users",
    "Number of user identities currently registered as online.",
)

realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of realtime events processed by the hub.",
    label_names=("event", "direction"),
)

realtime_deliveries_total = registry.counter(
    "realtime_deliveries_total",
    "Outcome of realtime delivery attempts per delivery mode.",
    label_names=("mode", "outcome"),
)

realtime_handler_errors_total = registry.counter(
    "realtime_handler_errors_total",
    "Errors raised while handling inbound realtime events.",
    label_names=("event",),
)
