"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lider_gateway.constants import JobOutcome, SchedulerState
from lider_gateway.types.job import Job, JobData, PassSummary


class EnqueueRequest(BaseModel):
    """Request body for enqueueing a sync job."""

    payload: JobData = Field(..., description="Tagged job payload")
    retries: int | None = Field(
        default=None, ge=0, le=10, description="Retry budget, defaults to JOB_MAX_RETRIES"
    )
    delay: int = Field(default=0, ge=0, description="Reserved delay in milliseconds")


class EnqueueResponse(BaseModel):
    """Response body after enqueueing a job."""

    id: str
    queue_name: str
    created: bool
    retries_remaining: int
    message: str = "Job queued"


class JobResponse(BaseModel):
    """Queued job details."""

    id: str
    payload: dict[str, Any]
    retries_remaining: int
    scheduled_delay: int
    created_at: datetime

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls(**job.to_dict())


class QueueResponse(BaseModel):
    """Snapshot of a named queue."""

    queue_name: str
    depth: int
    jobs: list[JobResponse]


class PassSummaryResponse(BaseModel):
    """Outcome of a processing pass."""

    queue_name: str
    skipped: bool
    processed: int
    succeeded: int
    retried: int
    dropped: int
    started_at: datetime
    finished_at: datetime | None

    @classmethod
    def from_summary(cls, summary: PassSummary) -> "PassSummaryResponse":
        return cls(
            queue_name=summary.queue_name,
            skipped=summary.skipped,
            processed=summary.processed,
            succeeded=summary.count(JobOutcome.SUCCESS),
            retried=summary.count(JobOutcome.RETRY),
            dropped=summary.count(JobOutcome.DROPPED),
            started_at=summary.started_at,
            finished_at=summary.finished_at,
        )


class RegisterRequest(BaseModel):
    """Device registration record relayed to LIDER."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: str = Field(..., min_length=1)
    from_: str | None = Field(default=None, alias="from")
    password: str | None = None
    data: Any | None = None
    mac_addresses: str | None = Field(default=None, alias="macAddresses")
    ip_addresses: str | None = Field(default=None, alias="ipAddresses")
    hostname: str | None = None
    user_name: str | None = Field(default=None, alias="userName")
    user_password: str | None = Field(default=None, alias="userPassword")
    timestamp: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    scheduler: SchedulerState
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(..., alias="statusCode")
    error: Any
    message: str
    timestamp: datetime
    path: str
    language: str
