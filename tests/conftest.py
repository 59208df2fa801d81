"""Shared pytest fixtures for upload proxy tests.

A single FastAPI app is created per test session to avoid duplicate
Prometheus metric registration errors (the instrumentator registers
collectors in the global prometheus_client registry). Apps built for custom
configs in individual tests run with metrics disabled.

The storage backend is an ``httpx.MockTransport`` that records every
outbound request, installed on ``app.state.http_client`` (the lifespan
context doesn't auto-run with ASGITransport).
"""

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from uploadproxy.config import ObservabilityConfig, ProxyConfig, ServerConfig, UpstreamConfig
from uploadproxy.server import create_app

UPSTREAM_BASE = "https://project.supabase.test"
SERVICE_KEY = "service-role-secret"
UPLOAD_PATH = "/api/upload/storage/v1/object"


class RecordingUpstream:
    """Fake storage backend: records requests and replies with a canned response.

    Set ``error`` to an exception instance to simulate a network failure.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body = b'{"Key":"audio-uploads/file"}'
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, content=self.body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture(scope="session")
def config() -> ProxyConfig:
    """Create a fully configured test ProxyConfig."""
    return ProxyConfig(
        server=ServerConfig(host="127.0.0.1", port=3010),
        upstream=UpstreamConfig(
            base_url=UPSTREAM_BASE,
            service_key=SERVICE_KEY,
            allowed_bucket="audio-uploads",
        ),
    )


@pytest.fixture(scope="session")
def app(config: ProxyConfig):
    """Create a single test FastAPI application for the whole session."""
    return create_app(config)


@pytest.fixture
def upstream() -> RecordingUpstream:
    return RecordingUpstream()


@pytest.fixture
async def client(app, upstream) -> AsyncClient:
    """Create an async test client whose outbound calls hit ``upstream``."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    app.state.http_client = http_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    await http_client.aclose()


@pytest.fixture
async def make_client(upstream):
    """Factory for clients backed by an app built from a custom upstream config.

    Usage: ``client = await make_client(UpstreamConfig(...))``. Metrics are
    disabled on these apps.
    """
    opened = []

    async def _make(
        upstream_config: UpstreamConfig, health_check: bool = True, **server_overrides
    ) -> AsyncClient:
        cfg = ProxyConfig(
            server=ServerConfig(**server_overrides),
            upstream=upstream_config,
            observability=ObservabilityConfig(metrics=False, health_check=health_check),
        )
        custom_app = create_app(cfg)
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        custom_app.state.http_client = http_client
        ac = AsyncClient(transport=ASGITransport(app=custom_app), base_url="http://testserver")
        opened.append((ac, http_client))
        return ac

    yield _make

    for ac, http_client in opened:
        await ac.aclose()
        await http_client.aclose()
