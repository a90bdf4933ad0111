"""
Scheduler that drains the job queue on a cron cadence.

Each tick runs one processing pass over the well-known queue:
1. Take a snapshot of the queue
2. Dispatch every job in snapshot order, one at a time
3. Dequeue on success, decrement the retry budget on failure, and drop the
   job once a failure finds the budget at zero

Passes never overlap: a tick that arrives while a pass is running is
skipped. Jobs are always mutated by id, never by position.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from lider_gateway.config import get_settings
from lider_gateway.constants import (
    SPAN_DISPATCH_JOB,
    SPAN_PROCESS_QUEUE,
    QueueName,
    SchedulerState,
)
from lider_gateway.exceptions import RemoteOperationError, RetriesExhausted
from lider_gateway.jobs.dispatch import JobDispatcher, dispatch_job
from lider_gateway.jobs.store import QueueStore
from lider_gateway.observability.metrics import MetricsCollector, get_metrics
from lider_gateway.observability.tracing import get_tracer
from lider_gateway.scheduler.cron import CronSchedule
from lider_gateway.types.events import JobEvent
from lider_gateway.types.job import Job, PassSummary

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[None]]
EventListener = Callable[[JobEvent], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    """
    Cron-driven processor for a single named queue.

    Features:
    - Start/stop lifecycle around a single asyncio task
    - Mutual exclusion between passes (overlapping ticks are skipped)
    - Per-dispatch timeout so a hung remote call cannot block later passes
    - Failure isolation: one job's error never aborts the pass
    - Injectable clock and sleep for deterministic tests
    """

    def __init__(
        self,
        store: QueueStore,
        dispatcher: JobDispatcher,
        queue_name: str = QueueName.ETA_LIDER_TASK,
        schedule: CronSchedule | None = None,
        dispatch_timeout: float | None = None,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            store: Queue store shared with producers.
            dispatcher: Collaborator performing the remote calls.
            queue_name: Queue drained by each pass.
            schedule: Tick cadence. Defaults to JOB_CRON_EXPRESSION.
            dispatch_timeout: Seconds allowed per dispatch.
            clock: Returns the current aware datetime.
            sleep: Coroutine used to wait for the next tick.
            metrics: Metrics collector. Defaults to the global one.
        """
        settings = get_settings()

        self.store = store
        self.dispatcher = dispatcher
        self.queue_name = str(queue_name)
        self.schedule = schedule or CronSchedule(settings.job_cron_expression)
        self.dispatch_timeout = (
            dispatch_timeout
            if dispatch_timeout is not None
            else settings.job_dispatch_timeout_seconds
        )

        self._clock = clock or _utcnow
        self._sleep = sleep or asyncio.sleep
        self._metrics = metrics or get_metrics()
        self._pass_lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._listeners: list[EventListener] = []
        self.last_pass: PassSummary | None = None

    @property
    def state(self) -> SchedulerState:
        """PROCESSING while a pass holds the lock, IDLE otherwise."""
        return SchedulerState.PROCESSING if self._pass_lock.locked() else SchedulerState.IDLE

    @property
    def running(self) -> bool:
        """Whether the cron loop task is alive."""
        return self._task is not None and not self._task.done()

    def add_listener(self, listener: EventListener) -> None:
        """Register a callback receiving every JobEvent."""
        self._listeners.append(listener)

    async def start(self) -> None:
        """Start the cron loop. Calling start on a running scheduler is a no-op."""
        if self.running:
            return

        self._task = asyncio.create_task(
            self._run_loop(), name=f"scheduler-{self.queue_name}"
        )
        logger.info(
            "Scheduler started",
            extra={"queue_name": self.queue_name, "schedule": self.schedule.expression},
        )

    async def stop(self) -> None:
        """Stop the cron loop, cancelling any pass in flight."""
        task, self._task = self._task, None
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.info("Scheduler stopped", extra={"queue_name": self.queue_name})

    async def _run_loop(self) -> None:
        previous: datetime | None = None

        while True:
            now = self._clock()
            next_fire = self.schedule.next_fire_time(now, previous)
            if next_fire is None:
                logger.warning(
                    "Schedule has no further fire times, stopping",
                    extra={"schedule": self.schedule.expression},
                )
                return

            await self._sleep(max(0.0, (next_fire - now).total_seconds()))
            previous = next_fire

            try:
                await self.run_pass()
            except Exception as e:
                logger.exception(
                    f"Error in scheduler loop: {e}",
                    extra={"queue_name": self.queue_name},
                )

    async def run_pass(self) -> PassSummary:
        """
        Run one processing pass over the queue.

        Returns:
            PassSummary with one outcome per dispatched job, or with
            skipped=True if another pass was already running.
        """
        summary = PassSummary(queue_name=self.queue_name, started_at=self._clock())

        if self._pass_lock.locked():
            summary.skipped = True
            summary.finished_at = summary.started_at
            logger.warning(
                "Processing pass already in progress, skipping tick",
                extra={"queue_name": self.queue_name},
            )
            self._metrics.record_pass(self.queue_name, "skipped")
            return summary

        async with self._pass_lock:
            with get_tracer().start_as_current_span(SPAN_PROCESS_QUEUE) as span:
                span.set_attribute("queue_name", self.queue_name)

                snapshot = self.store.snapshot(self.queue_name)
                span.set_attribute("jobs", len(snapshot))

                if not snapshot:
                    logger.debug("Queue is empty", extra={"queue_name": self.queue_name})
                    status = "empty"
                else:
                    logger.info(
                        f"Processing {len(snapshot)} jobs",
                        extra={"queue_name": self.queue_name},
                    )
                    for job in snapshot:
                        # Removed since the snapshot was taken
                        if not self.store.has_job(self.queue_name, job.id):
                            continue
                        event = await self._process_job(job)
                        summary.outcomes[job.id] = event.outcome
                    status = "completed"

            summary.finished_at = self._clock()
            self.last_pass = summary

        self._metrics.record_pass(self.queue_name, status)
        self._metrics.update_queue_depth(
            self.queue_name, self.store.queue_depth(self.queue_name)
        )
        return summary

    async def _process_job(self, job: Job) -> JobEvent:
        """
        Dispatch a single job and reconcile the outcome with the store.

        Args:
            job: Job as captured in the pass snapshot.

        Returns:
            The JobEvent describing the outcome.
        """
        start_time = time.perf_counter()

        try:
            with get_tracer().start_as_current_span(SPAN_DISPATCH_JOB) as span:
                span.set_attribute("job_id", job.id)
                span.set_attribute("retries_remaining", job.retries_remaining)

                await asyncio.wait_for(
                    dispatch_job(self.dispatcher, job),
                    timeout=self.dispatch_timeout,
                )

        except RemoteOperationError as e:
            logger.warning(
                "Job dispatch failed",
                extra={"job_id": job.id, "error": str(e), "status_code": e.status_code},
            )
            event = self._handle_failure(job, str(e))

        except TimeoutError:
            error = f"Dispatch timed out after {self.dispatch_timeout}s"
            logger.warning("Job dispatch timed out", extra={"job_id": job.id})
            event = self._handle_failure(job, error)

        except Exception as e:
            logger.exception(
                "Unexpected error dispatching job",
                extra={"job_id": job.id, "error": str(e)},
            )
            event = self._handle_failure(job, f"{type(e).__name__}: {e}")

        else:
            self.store.dequeue_job(self.queue_name, job.id)
            event = JobEvent.succeeded(job.id, self.queue_name, job.retries_remaining)

        self._metrics.record_dispatch(
            queue_name=self.queue_name,
            outcome=event.outcome,
            duration_seconds=time.perf_counter() - start_time,
        )
        self._emit(event)
        return event

    def _handle_failure(self, job: Job, error: str) -> JobEvent:
        if job.retries_remaining > 0:
            remaining = job.retries_remaining - 1
            self.store.update_job(self.queue_name, job.id, retries_remaining=remaining)
            return JobEvent.retried(job.id, self.queue_name, remaining, error)

        self.store.dequeue_job(self.queue_name, job.id)
        exhausted = RetriesExhausted(job.id, error)
        logger.error(
            str(exhausted),
            extra={"job_id": job.id, "queue_name": self.queue_name},
        )
        return JobEvent.dropped(job.id, self.queue_name, error)

    def _emit(self, event: JobEvent) -> None:
        logger.info(
            "Job processed",
            extra={
                "job_id": event.job_id,
                "outcome": event.outcome.value,
                "retries_remaining": event.retries_remaining,
            },
        )
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Job event listener failed")
