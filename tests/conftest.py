import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from probewatch.config import Settings
from probewatch.services.prometheus.client import PrometheusClient
from tests.mocks.fake_prometheus import FakePrometheusData, create_app


@pytest.fixture
def prom_data() -> FakePrometheusData:
    return FakePrometheusData()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        prometheus_base_url="http://fake-prometheus",
        probewatch_timezone="UTC",
        probewatch_chunk_policy="compact",
        probewatch_query_timeout=30.0,
        probewatch_chunk_timeout=10.0,
        probewatch_max_concurrency=4,
    )


@pytest_asyncio.fixture
async def prom_backend(prom_data):
    """PrometheusClient wired to the fake Prometheus via in-process ASGITransport."""
    transport = ASGITransport(app=create_app(prom_data))
    client = httpx.AsyncClient(transport=transport, base_url="http://fake-prometheus")
    backend = PrometheusClient(base_url="http://fake-prometheus", http_client=client)
    yield backend
    await client.aclose()


@pytest_asyncio.fixture
async def api_client(prom_backend, test_settings):
    """HTTP client for the probewatch API, backed by the fake Prometheus."""
    from probewatch.main import app, wire_services

    wire_services(app, prom_backend, test_settings)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
