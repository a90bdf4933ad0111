"""
In-memory job store.

Holds every named queue for the lifetime of the process. Queues are created
on first write and never deleted, only emptied. Reads of an unknown queue
see it as empty without creating it.

Each queue is an insertion-ordered mapping of job id to job:
- lookups and removals are by identity, never by position
- replacing an existing key keeps the job at its original position
- appends go to the tail, so pending jobs stay FIFO

All operations are synchronous and never yield to the event loop, so a
producer and a running processing pass cannot interleave inside one of them.
"""

import hashlib
import json
import logging
from collections.abc import Mapping, ValuesView
from dataclasses import replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from pydantic_core import PydanticSerializationError

from lider_gateway.constants import DEFAULT_DELAY_MS, DEFAULT_RETRIES
from lider_gateway.exceptions import SerializationError
from lider_gateway.types.job import Job

logger = logging.getLogger(__name__)

_NO_JOBS: Mapping[str, Job] = MappingProxyType({})


def serialize_payload(payload: Any) -> str:
    """
    Canonical JSON form of a job payload.

    Keys are sorted and separators compact so the same payload always
    produces the same string, across calls and process runs.

    Raises:
        SerializationError: If the payload holds values that cannot be encoded.
    """
    try:
        data = payload.model_dump(mode="json", by_alias=True)
        return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise SerializationError(f"Job payload is not serializable: {e}") from e


def generate_job_id(queue_name: str, payload: Any) -> str:
    """
    Generate the deduplication id of a job.

    Format: ``{queue}-{process}-{target_domain}-{mac_address}-{sha256}`` where
    the digest covers the canonical serialization of the whole payload.

    Args:
        queue_name: Queue the job belongs to.
        payload: Job payload variant.

    Returns:
        Deterministic job id.

    Raises:
        SerializationError: If the payload cannot be serialized.
    """
    digest = hashlib.sha256(serialize_payload(payload).encode("utf-8")).hexdigest()
    return (
        f"{queue_name}-{payload.process}-{payload.target_domain}-"
        f"{payload.correlation_key}-{digest}"
    )


class QueueStore:
    """
    Named FIFO queues of idempotent jobs.

    Guarantees:
    - no two jobs in a queue share an id (dedup at insertion)
    - retries_remaining never increases for a job
    - an updated job keeps its position
    """

    def __init__(self) -> None:
        self._queues: dict[str, dict[str, Job]] = {}

    def _queue(self, queue_name: str) -> dict[str, Job]:
        queue = self._queues.get(queue_name)
        if queue is None:
            queue = self._queues[queue_name] = {}
        return queue

    def _lookup(self, queue_name: str) -> Mapping[str, Job]:
        # Reads never create a queue
        return self._queues.get(queue_name, _NO_JOBS)

    def add_job(
        self,
        queue_name: str,
        payload: Any,
        retries: int = DEFAULT_RETRIES,
        delay: int = DEFAULT_DELAY_MS,
    ) -> tuple[Job, bool]:
        """
        Add a job to a queue unless an identical one is already pending.

        Args:
            queue_name: Target queue.
            payload: Job payload variant.
            retries: Retry budget for the job.
            delay: Delay in milliseconds, recorded only.

        Returns:
            Tuple of (job, created). On a duplicate, the pending job is
            returned with created=False.

        Raises:
            SerializationError: If the payload cannot be serialized for its id.
            ValueError: If retries or delay is negative.
        """
        if retries < 0:
            raise ValueError(f"retries must be >= 0, got {retries}")
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")

        job_id = generate_job_id(queue_name, payload)
        queue = self._queue(queue_name)

        existing = queue.get(job_id)
        if existing is not None:
            logger.warning(
                "Job already exists, ignoring duplicate",
                extra={"job_id": job_id, "queue_name": queue_name},
            )
            return existing, False

        job = Job(
            id=job_id,
            payload=payload.model_copy(deep=True),
            retries_remaining=retries,
            scheduled_delay=delay,
            created_at=datetime.now(timezone.utc),
        )
        queue[job_id] = job

        logger.info(
            "Added job",
            extra={
                "job_id": job_id,
                "queue_name": queue_name,
                "retries": retries,
                "depth": len(queue),
            },
        )
        return job, True

    def get_queue(self, queue_name: str) -> ValuesView[Job]:
        """
        Live, ordered, read-only view of a queue.

        The view reflects later mutations; iterate ``snapshot`` instead when
        the queue may change during iteration.
        """
        return self._queue(queue_name).values()

    def snapshot(self, queue_name: str) -> tuple[Job, ...]:
        """Stable copy of a queue's current contents, in order."""
        return tuple(self._lookup(queue_name).values())

    def get_next_job(self, queue_name: str) -> Job | None:
        """Return the head of the queue without removing it, or None if empty."""
        queue = self._lookup(queue_name)
        if not queue:
            logger.debug("Queue is empty", extra={"queue_name": queue_name})
            return None
        return next(iter(queue.values()))

    def has_job(self, queue_name: str, job_id: str) -> bool:
        """Check whether a job with this id is pending in the queue."""
        return job_id in self._lookup(queue_name)

    def get_job(self, queue_name: str, job_id: str) -> Job | None:
        """Get a pending job by id."""
        return self._lookup(queue_name).get(job_id)

    def dequeue_job(self, queue_name: str, job_id: str) -> bool:
        """
        Remove a job by id. Removing an absent job is a logged no-op.

        Returns:
            True if a job was removed.
        """
        job = self._queue(queue_name).pop(job_id, None)
        if job is None:
            logger.warning(
                "Job not found, nothing to dequeue",
                extra={"job_id": job_id, "queue_name": queue_name},
            )
            return False

        logger.info(
            "Dequeued job",
            extra={"job_id": job_id, "queue_name": queue_name},
        )
        return True

    def update_job(self, queue_name: str, job_id: str, **changes: Any) -> bool:
        """
        Merge field changes into a pending job, keeping its position.

        Args:
            queue_name: Queue holding the job.
            job_id: Id of the job to update.
            **changes: Job fields to replace, typically ``retries_remaining``.

        Returns:
            True if the job was found and updated.

        Raises:
            ValueError: If the change would alter the id or raise the retry budget.
        """
        queue = self._queue(queue_name)
        job = queue.get(job_id)
        if job is None:
            logger.warning(
                "Job not found, unable to update",
                extra={"job_id": job_id, "queue_name": queue_name},
            )
            return False

        if "id" in changes and changes["id"] != job_id:
            raise ValueError("Job id cannot be changed")
        retries = changes.get("retries_remaining", job.retries_remaining)
        if retries > job.retries_remaining or retries < 0:
            raise ValueError(
                f"retries_remaining must stay within [0, {job.retries_remaining}], got {retries}"
            )

        queue[job_id] = replace(job, **changes)

        logger.debug(
            "Updated job",
            extra={"job_id": job_id, "queue_name": queue_name, "changes": changes},
        )
        return True

    def queue_depth(self, queue_name: str) -> int:
        """Number of pending jobs in a queue."""
        return len(self._lookup(queue_name))

    def queue_names(self) -> list[str]:
        """Names of every queue referenced so far."""
        return list(self._queues)

    def clear(self) -> None:
        """Empty every queue. Queue names are kept."""
        for queue in self._queues.values():
            queue.clear()
