"""
FastAPI application entry point.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from lider_gateway import __version__
from lider_gateway.api.auth import get_client_ip
from lider_gateway.api.errors import register_exception_handlers
from lider_gateway.api.rate_limit import RateLimiter, create_rate_limit_middleware
from lider_gateway.api.routes import auth_router, health_router, queues_router
from lider_gateway.auth.backends import AuthenticationBackend, LdapAuthBackend
from lider_gateway.clients.relay import RelayClient
from lider_gateway.config import get_settings
from lider_gateway.jobs.store import QueueStore
from lider_gateway.observability.logging import bind_context, clear_context, setup_logging
from lider_gateway.observability.metrics import MetricsCollector, setup_metrics
from lider_gateway.observability.tracing import instrument_fastapi, setup_tracing
from lider_gateway.scheduler.cron import CronSchedule
from lider_gateway.scheduler.main import Scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Starts the queue scheduler on startup. On shutdown stops it, closes the
    relay client and discards whatever is still queued.
    """
    setup_logging()
    setup_tracing()

    scheduler: Scheduler = app.state.scheduler
    if get_settings().scheduler_enabled:
        await scheduler.start()

    logger.info("Application started")

    yield

    await scheduler.stop()
    await app.state.relay.close()

    store: QueueStore = app.state.store
    for queue_name in store.queue_names():
        pending = store.queue_depth(queue_name)
        if pending:
            logger.warning(
                "Discarding pending jobs on shutdown",
                extra={"queue_name": queue_name, "pending": pending},
            )
    store.clear()

    logger.info("Application shutdown")


def _build_auth_backend() -> AuthenticationBackend | None:
    try:
        return LdapAuthBackend.from_settings(get_settings())
    except ValueError as e:
        logger.warning("LDAP authentication disabled", extra={"reason": str(e)})
        return None


def create_request_middleware(
    metrics: MetricsCollector,
) -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    """
    Create the middleware that binds log context and records request metrics.

    Args:
        metrics: Collector receiving per-request counts and latency.

    Returns:
        The middleware function.
    """

    async def request_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        clear_context()
        bind_context(method=request.method, path=request.url.path, real_ip=get_client_ip(request))
        start_time = time.perf_counter()

        try:
            response = await call_next(request)

            duration = time.perf_counter() - start_time
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path)
            metrics.record_api_request(request.method, endpoint, response.status_code, duration)

            logger.info(
                "Request handled",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round(duration * 1000, 2),
                    "user_agent": request.headers.get("user-agent"),
                },
            )
            return response
        finally:
            clear_context()

    return request_middleware


def create_app(
    store: QueueStore | None = None,
    relay: RelayClient | None = None,
    auth_backend: AuthenticationBackend | None = None,
    metrics: MetricsCollector | None = None,
    scheduler: Scheduler | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Every collaborator can be injected; anything omitted is built from settings.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = get_settings()

    store = store or QueueStore()
    relay = relay or RelayClient(settings)
    metrics = metrics or setup_metrics()
    if auth_backend is None:
        auth_backend = _build_auth_backend()
    if scheduler is None:
        scheduler = Scheduler(
            store,
            relay,
            schedule=CronSchedule(settings.job_cron_expression),
            dispatch_timeout=settings.job_dispatch_timeout_seconds,
            metrics=metrics,
        )

    app = FastAPI(
        title="Lider Gateway API",
        description="Relay between the ETA and LIDER directories with a retrying job queue",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.store = store
    app.state.relay = relay
    app.state.metrics = metrics
    app.state.auth_backend = auth_backend
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(
        BaseHTTPMiddleware,
        dispatch=create_rate_limit_middleware(rate_limiter),
    )

    # Outermost, so throttled requests are logged and counted too
    app.add_middleware(
        BaseHTTPMiddleware,
        dispatch=create_request_middleware(metrics),
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(queues_router)

    instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    setup_logging()

    uvicorn.run(
        "lider_gateway.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
