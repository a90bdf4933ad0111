"""
Event type definitions for per-job observability.
"""

from datetime import datetime, timezone

from pydantic import BaseModel

from lider_gateway.constants import JobOutcome


class JobEvent(BaseModel):
    """
    Event emitted once per job for every processing pass.
    Delivered to scheduler listeners, logged and counted in metrics.
    """

    job_id: str
    queue_name: str
    outcome: JobOutcome
    retries_remaining: int
    timestamp: datetime
    error: str | None = None

    @classmethod
    def succeeded(cls, job_id: str, queue_name: str, retries_remaining: int) -> "JobEvent":
        """Create a dispatch succeeded event."""
        return cls(
            job_id=job_id,
            queue_name=queue_name,
            outcome=JobOutcome.SUCCESS,
            retries_remaining=retries_remaining,
            timestamp=datetime.now(timezone.utc),
        )

    @classmethod
    def retried(
        cls,
        job_id: str,
        queue_name: str,
        retries_remaining: int,
        error: str,
    ) -> "JobEvent":
        """Create a job kept for retry event. ``retries_remaining`` is the decremented budget."""
        return cls(
            job_id=job_id,
            queue_name=queue_name,
            outcome=JobOutcome.RETRY,
            retries_remaining=retries_remaining,
            timestamp=datetime.now(timezone.utc),
            error=error,
        )

    @classmethod
    def dropped(cls, job_id: str, queue_name: str, error: str) -> "JobEvent":
        """Create a job dropped after exhausting its retries event."""
        return cls(
            job_id=job_id,
            queue_name=queue_name,
            outcome=JobOutcome.DROPPED,
            retries_remaining=0,
            timestamp=datetime.now(timezone.utc),
            error=error,
        )
