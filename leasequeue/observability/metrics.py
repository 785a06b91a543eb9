"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from leasequeue.constants import (
    METRIC_API_LATENCY,
    METRIC_API_REQUESTS,
    METRIC_CLAIM_BATCH_SIZE,
    METRIC_MESSAGES_ACKNOWLEDGED,
    METRIC_MESSAGES_CLAIMED,
    METRIC_MESSAGES_ENQUEUED,
    METRIC_QUEUE_DEPTH,
    METRIC_STORE_LATENCY,
)
from leasequeue.types.message import QueueStats

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the queue.

    Collects metrics for:
    - Queue depth by lease state
    - Enqueues, claims and acknowledgements
    - Store operation latency
    - API requests
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of messages in the queue by lease state",
            ["state"],
            registry=self._registry,
        )

        self.messages_enqueued = Counter(
            METRIC_MESSAGES_ENQUEUED,
            "Total number of messages enqueued",
            registry=self._registry,
        )

        self.messages_claimed = Counter(
            METRIC_MESSAGES_CLAIMED,
            "Total number of messages handed out by claims",
            ["category"],
            registry=self._registry,
        )

        self.messages_acknowledged = Counter(
            METRIC_MESSAGES_ACKNOWLEDGED,
            "Total number of acknowledgements by outcome",
            ["outcome"],
            registry=self._registry,
        )

        self.claim_batch_size = Histogram(
            METRIC_CLAIM_BATCH_SIZE,
            "Number of messages returned per claim",
            buckets=(0, 1, 2, 5, 10, 25, 50, 100),
            registry=self._registry,
        )

        self.store_latency = Histogram(
            METRIC_STORE_LATENCY,
            "Store operation duration in seconds",
            ["operation"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=self._registry,
        )

        self.api_requests = Counter(
            METRIC_API_REQUESTS,
            "Total number of API requests",
            ["method", "endpoint", "status"],
            registry=self._registry,
        )

        self.api_latency = Histogram(
            METRIC_API_LATENCY,
            "API request latency in seconds",
            ["method", "endpoint"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_enqueued(self) -> None:
        """Record a message enqueue."""
        self.messages_enqueued.inc()

    def record_claimed(self, counts: dict[str, int]) -> None:
        """Record one claim's batch, broken down by category."""
        total = 0
        for category, count in counts.items():
            if count:
                self.messages_claimed.labels(category=category).inc(count)
            total += count
        self.claim_batch_size.observe(total)

    def record_acknowledged(self, outcome: str) -> None:
        """Record an acknowledgement outcome."""
        self.messages_acknowledged.labels(outcome=outcome).inc()

    def observe_store_latency(self, operation: str, duration_seconds: float) -> None:
        self.store_latency.labels(operation=operation).observe(duration_seconds)

    def update_queue_depth(self, stats: QueueStats) -> None:
        """Update queue depth gauges from a stats snapshot."""
        self.queue_depth.labels(state="unclaimed").set(stats.unclaimed)
        self.queue_depth.labels(state="leased").set(stats.leased)
        self.queue_depth.labels(state="expired").set(stats.expired)

    def record_api_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration_seconds: float,
    ) -> None:
        """Record an API request."""
        self.api_requests.labels(
            method=method,
            endpoint=endpoint,
            status=str(status),
        ).inc()
        self.api_latency.labels(method=method, endpoint=endpoint).observe(
            duration_seconds
        )

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
