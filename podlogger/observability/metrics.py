"""Prometheus metrics for pod-logger.

All collectors live in the default registry; ``start_metrics_server`` exposes
them over HTTP when a port is configured.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

passes_total = Counter(
    "podlogger_passes_total",
    "Logging passes by outcome.",
    ["outcome"],
)

pod_lines_total = Counter(
    "podlogger_pod_lines_total",
    "Pod status lines by file write result.",
    ["result"],
)

pass_duration_seconds = Histogram(
    "podlogger_pass_duration_seconds",
    "Wall-clock duration of a logging pass.",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

leadership_transitions_total = Counter(
    "podlogger_leadership_transitions_total",
    "Leadership state machine transitions by target state.",
    ["state"],
)

is_leader = Gauge(
    "podlogger_is_leader",
    "1 while this replica holds the lease, 0 otherwise.",
)


def start_metrics_server(port: int) -> None:
    """Serve /metrics on *port* from a daemon thread."""
    start_http_server(port)
