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

from jobqueue.constants import (
    METRIC_ACK_ERRORS,
    METRIC_CLAIM_ERRORS,
    METRIC_JOB_DURATION,
    METRIC_JOBS_ACKED,
    METRIC_JOBS_CLAIMED,
    METRIC_JOBS_PUSHED,
    METRIC_LEASES_RECLAIMED,
    METRIC_QUEUE_DEPTH,
    JobStatus,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Queue depth per status
    - Jobs pushed, claimed and acknowledged
    - Job execution duration
    - Claim/ack failures and lease reclaims
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
            "Number of jobs stored, by status",
            ["status"],
            registry=self._registry,
        )

        self.jobs_pushed = Counter(
            METRIC_JOBS_PUSHED,
            "Total number of jobs pushed",
            ["kind"],
            registry=self._registry,
        )

        self.jobs_claimed = Counter(
            METRIC_JOBS_CLAIMED,
            "Total number of jobs claimed",
            ["worker_id"],
            registry=self._registry,
        )

        # outcome is "completed" or "failed"
        self.jobs_acked = Counter(
            METRIC_JOBS_ACKED,
            "Total number of jobs acknowledged",
            ["kind", "outcome"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["kind", "outcome"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )

        self.claim_errors = Counter(
            METRIC_CLAIM_ERRORS,
            "Total number of failed claim calls",
            ["worker_id"],
            registry=self._registry,
        )

        self.ack_errors = Counter(
            METRIC_ACK_ERRORS,
            "Total number of failed complete/fail calls",
            ["worker_id"],
            registry=self._registry,
        )

        self.leases_reclaimed = Counter(
            METRIC_LEASES_RECLAIMED,
            "Total number of running jobs requeued after lease expiry",
            registry=self._registry,
        )

    def record_job_pushed(self, kind: str) -> None:
        self.jobs_pushed.labels(kind=kind).inc()

    def record_jobs_claimed(self, worker_id: str, count: int) -> None:
        self.jobs_claimed.labels(worker_id=worker_id).inc(count)

    def record_job_acked(
        self,
        kind: str,
        outcome: str,
        duration_seconds: float,
    ) -> None:
        """Record a job acknowledgement and how long it ran."""
        self.jobs_acked.labels(kind=kind, outcome=outcome).inc()
        self.job_duration.labels(kind=kind, outcome=outcome).observe(duration_seconds)

    def record_claim_error(self, worker_id: str) -> None:
        self.claim_errors.labels(worker_id=worker_id).inc()

    def record_ack_error(self, worker_id: str) -> None:
        self.ack_errors.labels(worker_id=worker_id).inc()

    def record_leases_reclaimed(self, count: int) -> None:
        self.leases_reclaimed.inc(count)

    def update_queue_depth(self, counts: dict[JobStatus, int]) -> None:
        """Set the depth gauge for every status."""
        for status, count in counts.items():
            self.queue_depth.labels(status=status.name.lower()).set(count)

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
