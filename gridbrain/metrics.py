"""
GridBrain Prometheus Metrics

Lets operators see when fallback scoring is in effect and how the
external telemetry dependency behaves. All metrics live on a dedicated
registry, exposed by start_metrics_server().
"""

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

from .utils import get_logger

logger = get_logger(__name__)

# Create registry
registry = CollectorRegistry()

# Define metrics
fallback_scores = Counter(
    'gridbrain_fallback_scores_total',
    'Node scores that used the fallback value',
    ['reason'],
    registry=registry,
)

telemetry_fetch_seconds = Histogram(
    'gridbrain_telemetry_fetch_seconds',
    'Latency of the external telemetry fetch',
    registry=registry,
)

telemetry_fetch_failures = Counter(
    'gridbrain_telemetry_fetch_failures_total',
    'Telemetry fetches that failed (transport or decode)',
    registry=registry,
)

score_distribution = Histogram(
    'gridbrain_node_score',
    'Scores returned to the host, fallbacks included',
    buckets=(0, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100),
    registry=registry,
)

bind_notifications = Counter(
    'gridbrain_bind_notifications_total',
    'Post-bind notifications by outcome',
    ['outcome'],
    registry=registry,
)


def start_metrics_server(port: int) -> None:
    """Serve the registry over HTTP on the given port."""
    start_http_server(port, registry=registry)
    logger.info("Metrics exposed on :%d/metrics", port)
