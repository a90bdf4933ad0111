"""
Pytest configuration and shared fixtures.
"""

import asyncio
from collections.abc import AsyncGenerator, Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from prometheus_client import CollectorRegistry

from lider_gateway.api.main import create_app
from lider_gateway.clients.relay import RelayClient
from lider_gateway.config import Settings, get_settings
from lider_gateway.constants import PlatformType
from lider_gateway.exceptions import RemoteOperationError
from lider_gateway.jobs.store import QueueStore
from lider_gateway.observability.metrics import MetricsCollector
from lider_gateway.scheduler.main import Scheduler
from lider_gateway.types.job import parse_job_data

TEST_API_KEY = "test-api-key"


@pytest.fixture(autouse=True)
def test_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Isolate every test from the developer's environment and .env file."""
    monkeypatch.setenv("API_KEY", TEST_API_KEY)
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("OTEL_ENABLED", "false")
    monkeypatch.setenv("LOG_FORMAT", "console")
    monkeypatch.setenv("FALLBACK_LANGUAGE", "en")
    monkeypatch.setenv("LIDER_URL", "http://lider.test")
    monkeypatch.setenv("ETA_URL", "http://eta.test")
    for name in ("LDAP_URL", "LDAP_SEARCH_BASE", "LDAP_CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector on a private registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def store() -> QueueStore:
    return QueueStore()


class FakeDispatcher:
    """
    Records every dispatch and fails on demand.

    ``fail_keys`` holds MAC addresses whose dispatches always fail.
    ``fail_times`` maps a MAC address to a number of failures before success.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.fail_keys: set[str] = set()
        self.fail_times: dict[str, int] = {}
        self.gate: asyncio.Event | None = None

    def _maybe_fail(self, correlation_key: str) -> None:
        if correlation_key in self.fail_keys:
            raise RemoteOperationError(f"Remote rejected {correlation_key}", status_code=500)
        remaining = self.fail_times.get(correlation_key, 0)
        if remaining > 0:
            self.fail_times[correlation_key] = remaining - 1
            raise RemoteOperationError(f"Remote unavailable for {correlation_key}", status_code=503)

    async def perform_read(self, correlation_key: str, target_domain: PlatformType) -> Any:
        self.calls.append(("read", correlation_key))
        if self.gate is not None:
            await self.gate.wait()
        self._maybe_fail(correlation_key)
        return {"macAddress": correlation_key, "domain": str(target_domain)}

    async def perform_write(self, target_domain: PlatformType, update_payload: dict[str, Any]) -> Any:
        correlation_key = update_payload["macAddress"]
        self.calls.append(("write", correlation_key))
        if self.gate is not None:
            await self.gate.wait()
        self._maybe_fail(correlation_key)
        return {"updated": True}

    def dispatched_keys(self) -> list[str]:
        return [key for _, key in self.calls]


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(
    store: QueueStore,
    dispatcher: FakeDispatcher,
    clock: FakeClock,
    metrics: MetricsCollector,
) -> Scheduler:
    return Scheduler(store, dispatcher, clock=clock, metrics=metrics, dispatch_timeout=1.0)


def make_read_payload(mac: str, domain: str = "LIDER", **extra: Any):
    return parse_job_data(
        {"process": "GET", "targetDomain": domain, "data": {"macAddress": mac}, **extra}
    )


def make_eta_update_payload(mac: str, school_code: str = "123456", **extra: Any):
    return parse_job_data(
        {
            "process": "UPDATE",
            "targetDomain": "ETA",
            "data": {"macAddress": mac, "schoolCode": school_code},
            **extra,
        }
    )


def make_lider_update_payload(mac: str, hostname: str = "pardus-01", **extra: Any):
    return parse_job_data(
        {
            "process": "UPDATE",
            "targetDomain": "LIDER",
            "data": {"macAddress": mac, "hostname": hostname},
            **extra,
        }
    )


@pytest.fixture
def read_payload() -> Callable[..., Any]:
    return make_read_payload


@pytest.fixture
def eta_update_payload() -> Callable[..., Any]:
    return make_eta_update_payload


@pytest.fixture
def lider_update_payload() -> Callable[..., Any]:
    return make_lider_update_payload


class FakeAuthBackend:
    """Accepts exactly the configured username/password pairs."""

    def __init__(self, users: dict[str, str] | None = None):
        self.users = users or {"admin": "secret"}
        self.attempts: list[str] = []

    async def basic_auth(self, username: str, password: str) -> bool:
        self.attempts.append(username)
        return bool(username) and self.users.get(username) == password


@pytest.fixture
def auth_backend() -> FakeAuthBackend:
    return FakeAuthBackend()


class RemoteRecorder:
    """httpx.MockTransport handler standing in for the LIDER and ETA APIs."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: Any = {"ok": True}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture
def remote() -> RemoteRecorder:
    return RemoteRecorder()


@pytest_asyncio.fixture
async def relay(remote: RemoteRecorder) -> AsyncGenerator[RelayClient]:
    client = RelayClient(client=httpx.AsyncClient(transport=httpx.MockTransport(remote)))
    yield client
    await client.close()


@pytest.fixture
def app(
    store: QueueStore,
    relay: RelayClient,
    auth_backend: FakeAuthBackend,
    metrics: MetricsCollector,
    scheduler: Scheduler,
) -> FastAPI:
    """Application wired to in-memory fakes. Lifespan is not run."""
    return create_app(
        store=store,
        relay=relay,
        auth_backend=auth_backend,
        metrics=metrics,
        scheduler=scheduler,
    )


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def api_headers() -> dict[str, str]:
    return {"api-key": TEST_API_KEY}
