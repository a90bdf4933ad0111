"""
Job dispatch routing.

Dispatch targets must be idempotent - a job is re-dispatched after every
failed attempt until its retry budget runs out.
"""

from typing import Any, Protocol

from lider_gateway.constants import PlatformType
from lider_gateway.types.job import (
    EtaUpdateJobData,
    Job,
    LiderUpdateJobData,
    ReadJobData,
)


class JobDispatcher(Protocol):
    """
    External operations a job is dispatched to.

    Both methods raise ``RemoteOperationError`` when the remote side fails.
    """

    async def perform_read(self, correlation_key: str, target_domain: PlatformType) -> Any:
        ...

    async def perform_write(
        self,
        target_domain: PlatformType,
        update_payload: dict[str, Any],
    ) -> Any:
        ...


async def dispatch_job(dispatcher: JobDispatcher, job: Job) -> Any:
    """
    Invoke the external operation matching a job's payload variant.

    Args:
        dispatcher: Collaborator performing the remote calls.
        job: The job to dispatch.

    Returns:
        Whatever the collaborator returns.

    Raises:
        RemoteOperationError: If the remote call fails.
        TypeError: If the payload is not a known variant.
    """
    payload = job.payload

    match payload:
        case ReadJobData():
            return await dispatcher.perform_read(
                payload.correlation_key,
                PlatformType(payload.target_domain),
            )
        case EtaUpdateJobData():
            return await dispatcher.perform_write(
                PlatformType.ETA,
                payload.data.model_dump(mode="json", by_alias=True),
            )
        case LiderUpdateJobData():
            return await dispatcher.perform_write(
                PlatformType.LIDER,
                payload.data.model_dump(mode="json", by_alias=True),
            )
        case _:
            raise TypeError(f"Unsupported job payload: {type(payload).__name__}")
