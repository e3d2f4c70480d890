"""
Prometheus collectors for the exporter.

All collectors live in the global REGISTRY; import this module once and
expose the registry however the host application already does.
"""

from prometheus_client import Counter, Gauge, Histogram

EXPORTER_ROWS_TOTAL = Counter(
    "exporter_rows_total",
    "Rows dispatched to the sink, by outcome",
    ["table", "status"],
)

EXPORTER_BATCH_LATENCY = Histogram(
    "exporter_batch_latency_seconds",
    "Latency of one insert request to the sink",
    ["table"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)

EXPORTER_BUFFER_DEPTH = Gauge(
    "exporter_buffer_depth",
    "Rows currently waiting in the in-memory buffer",
    ["table"],
)

EXPORTER_DRAINS_TOTAL = Counter(
    "exporter_drains_total",
    "Drain attempts by trigger and outcome",
    ["table", "trigger", "outcome"],
)

EXPORTER_PROVISIONING_TOTAL = Counter(
    "exporter_provisioning_total",
    "Provisioning runs by outcome",
    ["table", "outcome"],
)


class MetricsRegistry:
    """Structured access to the exporter's collectors."""

    rows_total = EXPORTER_ROWS_TOTAL
    batch_latency = EXPORTER_BATCH_LATENCY
    buffer_depth = EXPORTER_BUFFER_DEPTH
    drains_total = EXPORTER_DRAINS_TOTAL
    provisioning_total = EXPORTER_PROVISIONING_TOTAL


# Singleton instance
metrics_registry = MetricsRegistry()
