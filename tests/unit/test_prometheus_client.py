from datetime import datetime, timedelta, timezone

import httpx
import pytest

from probewatch.core.exceptions import BackendUnavailableError, QueryError
from probewatch.services.prometheus.client import PrometheusClient, selector

T0 = datetime(2025, 6, 21, tzinfo=timezone.utc)


def _client_with(handler) -> PrometheusClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PrometheusClient(base_url="http://prom:9090/", http_client=http_client)


class TestSelector:
    def test_single_target(self):
        assert selector("probe_success", "https://example.com") == 'probe_success{instance="https://example.com"}'

    def test_single_target_in_list(self):
        assert selector("probe_success", ["a.com"]) == 'probe_success{instance="a.com"}'

    def test_multiple_targets_use_escaped_regex(self):
        expr = selector("probe_success", ["a.com", "b.com"])
        assert expr == 'probe_success{instance=~"a\\\\.com|b\\\\.com"}'

    def test_custom_label_and_quotes(self):
        assert selector("up", 'we"ird', label="target") == 'up{target="we\\"ird"}'


async def test_range_query_sends_params_and_returns_matrix():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["timeout"] = request.extensions.get("timeout")
        return httpx.Response(
            200,
            json={
                "status": "success",
                "data": {"resultType": "matrix", "result": [{"metric": {}, "values": [[T0.timestamp(), "1"]]}]},
            },
        )

    client = _client_with(handler)
    result = await client.range_query(
        'probe_success{instance="a"}', T0, T0 + timedelta(hours=1), 60, timeout=60.0
    )

    assert result == [{"metric": {}, "values": [[T0.timestamp(), "1"]]}]
    assert seen["path"] == "/api/v1/query_range"
    assert seen["params"]["query"] == 'probe_success{instance="a"}'
    assert float(seen["params"]["start"]) == T0.timestamp()
    assert float(seen["params"]["end"]) == T0.timestamp() + 3600
    assert seen["params"]["step"] == "60"
    assert seen["timeout"]["read"] == 60.0
    await client.close()


async def test_instant_query_with_time():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/query"
        assert float(request.url.params["time"]) == T0.timestamp()
        return httpx.Response(
            200,
            json={"status": "success", "data": {"resultType": "vector", "result": [{"metric": {}, "value": [1, "1"]}]}},
        )

    client = _client_with(handler)
    assert await client.instant_query("probe_success", time=T0) == [{"metric": {}, "value": [1, "1"]}]


async def test_error_payload_raises_query_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"status": "error", "errorType": "bad_data", "error": "parse error"})

    client = _client_with(handler)
    with pytest.raises(QueryError) as exc:
        await client.instant_query("probe_success{")
    assert "parse error" in exc.value.message
    assert exc.value.details["error_type"] == "bad_data"


async def test_server_error_raises_backend_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    client = _client_with(handler)
    with pytest.raises(BackendUnavailableError) as exc:
        await client.series("probe_success", T0, T0 + timedelta(hours=1))
    assert "502" in exc.value.message


async def test_connect_error_raises_backend_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client_with(handler)
    with pytest.raises(BackendUnavailableError) as exc:
        await client.status_config()
    assert "http://prom:9090" in exc.value.message


async def test_timeout_raises_backend_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client_with(handler)
    with pytest.raises(BackendUnavailableError):
        await client.range_query("probe_success", T0, T0 + timedelta(hours=1), 60)


async def test_health_check(prom_backend):
    assert await prom_backend.health_check() is True


async def test_health_check_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client_with(handler)
    assert await client.health_check() is False


async def test_series_against_fake(prom_backend, prom_data):
    prom_data.add_probe("a.com", int(T0.timestamp()), "11")
    series = await prom_backend.series("probe_success", T0, T0 + timedelta(hours=1))
    assert [s["instance"] for s in series] == ["a.com"]
