"""Metric definitions for the realtime layer."""

from __future__ import annotations

from .registry import registry


realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of active websocket connections handled locally.",
    label_names=("scope",),
)

realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of realtime events processed by the namespaces.",
    label_names=("topic", "direction", "action"),
)

realtime_dropped_deliveries_total = registry.counter(
    "realtime_dropped_deliveries_total",
    "Best-effort deliveries skipped because the recipient had no live connection.",
    label_names=("namespace",),
)

realtime_errors_total = registry.counter(
    "realtime_errors_total",
    "Scoped error events sent back to acting connections.",
    label_names=("namespace", "category"),
)
