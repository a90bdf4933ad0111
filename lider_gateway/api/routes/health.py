"""
Health check routes.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import Response

from lider_gateway import __version__
from lider_gateway.api.dependencies import MetricsDep, SchedulerDep
from lider_gateway.config import get_settings
from lider_gateway.types.api import HealthResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and the queue scheduler.",
)
async def health_check(scheduler: SchedulerDep) -> HealthResponse:
    """
    Perform a health check.

    The service is degraded when the scheduler is enabled but its loop is
    not running.
    """
    healthy = scheduler.running or not get_settings().scheduler_enabled

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        version=__version__,
        scheduler=scheduler.state,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(scheduler: SchedulerDep) -> dict:
    """Kubernetes readiness probe endpoint."""
    return {"ready": scheduler.running or not get_settings().scheduler_enabled}


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the service is alive.",
)
async def liveness_check() -> dict:
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics.",
)
async def metrics(metrics_collector: MetricsDep) -> Response:
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
