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

from lider_gateway.constants import (
    METRIC_API_LATENCY,
    METRIC_API_REQUESTS,
    METRIC_DISPATCH_DURATION,
    METRIC_JOB_OUTCOMES,
    METRIC_JOBS_ENQUEUED,
    METRIC_PASSES,
    METRIC_QUEUE_DEPTH,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the gateway.

    Collects metrics for:
    - Queue depth
    - Job enqueues and per-pass outcomes
    - Dispatch duration
    - Processing passes
    - API requests
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        # Queue depth gauge (by queue)
        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of jobs pending in the queue",
            ["queue_name"],
            registry=self._registry,
        )

        # Jobs enqueued counter (created or ignored duplicate)
        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of enqueue requests",
            ["queue_name", "result"],
            registry=self._registry,
        )

        # Job outcomes counter
        self.job_outcomes = Counter(
            METRIC_JOB_OUTCOMES,
            "Total number of job outcomes per pass",
            ["queue_name", "outcome"],
            registry=self._registry,
        )

        # Dispatch duration histogram
        self.dispatch_duration = Histogram(
            METRIC_DISPATCH_DURATION,
            "Job dispatch duration in seconds",
            ["queue_name", "outcome"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )

        # Processing passes counter
        self.passes = Counter(
            METRIC_PASSES,
            "Total number of processing passes",
            ["queue_name", "status"],
            registry=self._registry,
        )

        # API requests counter
        self.api_requests = Counter(
            METRIC_API_REQUESTS,
            "Total number of API requests",
            ["method", "endpoint", "status"],
            registry=self._registry,
        )

        # API latency histogram
        self.api_latency = Histogram(
            METRIC_API_LATENCY,
            "API request latency in seconds",
            ["method", "endpoint"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )

    def record_job_enqueued(self, queue_name: str, created: bool) -> None:
        """Record an enqueue request."""
        result = "created" if created else "duplicate"
        self.jobs_enqueued.labels(queue_name=queue_name, result=result).inc()

    def record_dispatch(
        self,
        queue_name: str,
        outcome: str,
        duration_seconds: float,
    ) -> None:
        """Record a job dispatch and its outcome."""
        self.job_outcomes.labels(queue_name=queue_name, outcome=outcome).inc()
        self.dispatch_duration.labels(queue_name=queue_name, outcome=outcome).observe(
            duration_seconds
        )

    def record_pass(self, queue_name: str, status: str) -> None:
        """Record a processing pass (completed, empty or skipped)."""
        self.passes.labels(queue_name=queue_name, status=status).inc()

    def update_queue_depth(self, queue_name: str, depth: int) -> None:
        """Update queue depth for a queue."""
        self.queue_depth.labels(queue_name=queue_name).set(depth)

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
