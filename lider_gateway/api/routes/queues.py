"""
Queue producer and diagnostics routes.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from lider_gateway.api.auth import ApiKeyGuard
from lider_gateway.api.dependencies import MetricsDep, SchedulerDep, StoreDep
from lider_gateway.config import get_settings
from lider_gateway.constants import API_V1_PREFIX, QueueName
from lider_gateway.types.api import (
    EnqueueRequest,
    EnqueueResponse,
    JobResponse,
    PassSummaryResponse,
    QueueResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix=API_V1_PREFIX, tags=["Queues"], dependencies=[ApiKeyGuard])


@router.post(
    "/sync",
    response_model=EnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a sync job",
    description="Queue a school record read or update for the next processing pass.",
)
async def enqueue_sync(
    request: EnqueueRequest,
    store: StoreDep,
    metrics: MetricsDep,
) -> EnqueueResponse:
    """
    Add a sync job to the etaLiderTask queue.

    Enqueueing is idempotent: a job whose id is already pending is returned
    with ``created=False`` and its current retry budget.

    Args:
        request: Payload, optional retry budget and reserved delay.
        store: Queue store.
        metrics: Metrics collector.

    Returns:
        EnqueueResponse describing the pending job.
    """
    queue_name = str(QueueName.ETA_LIDER_TASK)
    retries = request.retries if request.retries is not None else get_settings().job_max_retries

    job, created = store.add_job(
        queue_name,
        request.payload,
        retries=retries,
        delay=request.delay,
    )

    metrics.record_job_enqueued(queue_name, created)
    metrics.update_queue_depth(queue_name, store.queue_depth(queue_name))

    return EnqueueResponse(
        id=job.id,
        queue_name=queue_name,
        created=created,
        retries_remaining=job.retries_remaining,
        message="Job queued" if created else "Job already queued",
    )


@router.post(
    "/queues/process",
    response_model=PassSummaryResponse,
    summary="Run a processing pass",
    description="Process the queue now. Skipped if a pass is already running.",
)
async def process_queue(scheduler: SchedulerDep) -> PassSummaryResponse:
    summary = await scheduler.run_pass()
    logger.info(
        "Manual processing pass finished",
        extra={
            "queue_name": summary.queue_name,
            "skipped": summary.skipped,
            "processed": summary.processed,
        },
    )
    return PassSummaryResponse.from_summary(summary)


@router.get(
    "/queues/{queue_name}",
    response_model=QueueResponse,
    summary="Inspect a queue",
)
async def get_queue(queue_name: str, store: StoreDep) -> QueueResponse:
    """Return the pending jobs of a queue in processing order."""
    jobs = store.snapshot(queue_name)
    return QueueResponse(
        queue_name=queue_name,
        depth=len(jobs),
        jobs=[JobResponse.from_job(job) for job in jobs],
    )


@router.get(
    "/queues/{queue_name}/jobs/{job_id}",
    response_model=JobResponse,
    summary="Get a pending job",
)
async def get_job(queue_name: str, job_id: str, store: StoreDep) -> JobResponse:
    """
    Get a pending job by id.

    Raises:
        HTTPException: 404 if no such job is pending.
    """
    job = store.get_job(queue_name, job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )
    return JobResponse.from_job(job)
