"""
FastAPI dependencies exposing the application-owned components.

The queue store, scheduler, relay client and authentication backend are
built once by ``create_app`` and kept on ``app.state``.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from lider_gateway.auth.backends import AuthenticationBackend
from lider_gateway.clients.relay import RelayClient
from lider_gateway.jobs.store import QueueStore
from lider_gateway.observability.metrics import MetricsCollector
from lider_gateway.scheduler.main import Scheduler


def get_queue_store(request: Request) -> QueueStore:
    return request.app.state.store


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler


def get_relay_client(request: Request) -> RelayClient:
    return request.app.state.relay


def get_metrics_collector(request: Request) -> MetricsCollector:
    return request.app.state.metrics


def get_auth_backend(request: Request) -> AuthenticationBackend:
    backend = request.app.state.auth_backend
    if backend is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication backend is not configured",
        )
    return backend


StoreDep = Annotated[QueueStore, Depends(get_queue_store)]
SchedulerDep = Annotated[Scheduler, Depends(get_scheduler)]
RelayDep = Annotated[RelayClient, Depends(get_relay_client)]
AuthBackendDep = Annotated[AuthenticationBackend, Depends(get_auth_backend)]
MetricsDep = Annotated[MetricsCollector, Depends(get_metrics_collector)]
