"""Metric definitions for the realtime chat service."""

from __future__ import annotations

from .registry import registry

realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of websocket connections registered with the channel router.",
    label_names=("scope",),
)

realtime_events_total = registry.counter(
    "realtime_events_total",
    "Realtime events received from clients or fanned out to them.",
    label_names=("event", "direction"),
)

presence_online_users = registry.gauge(
    "presence_online_users",
    "Distinct users with at least one open connection.",
)

message_store_errors_total = registry.counter(
    "message_store_errors_total",
    "Failed message store operations.",
    label_names=("operation",),
)

media_cleanup_failures_total = registry.counter(
    "media_cleanup_failures_total",
    "Hosted media that could not be removed after its message was deleted.",
)
