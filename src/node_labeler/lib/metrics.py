"""
metrics.py
- Prometheus metrics for reconcile outcomes, inventory lookups and queue depth.
- Rendered as text by the /metrics route in main.py.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

reconcile_total = Counter(
    "node_labeler_reconcile_total",
    "Reconcile invocations by result",
    ["result"],
)
reconcile_duration_seconds = Histogram(
    "node_labeler_reconcile_duration_seconds",
    "Time spent in a single reconcile invocation",
)
label_updates_total = Counter(
    "node_labeler_label_updates_total",
    "Node updates that wrote zone/rack labels",
)
inventory_lookups_total = Counter(
    "node_labeler_inventory_lookups_total",
    "Nautobot device lookups by outcome",
    ["outcome"],
)
queue_depth = Gauge(
    "node_labeler_queue_depth",
    "Node keys waiting in the work queue",
)
watch_restarts_total = Counter(
    "node_labeler_watch_restarts_total",
    "Times the node watch stream was re-established",
)


def render():
    """Return (body, content_type) for the current registry."""
    return generate_latest(), CONTENT_TYPE_LATEST
