"""
Jobs module.
Contains the in-memory queue store and dispatch routing.
"""

from lider_gateway.jobs.dispatch import JobDispatcher, dispatch_job
from lider_gateway.jobs.store import QueueStore, generate_job_id, serialize_payload

__all__ = [
    "QueueStore",
    "generate_job_id",
    "serialize_payload",
    "JobDispatcher",
    "dispatch_job",
]
