import re
from datetime import datetime

import httpx
import structlog

from probewatch.core.exceptions import BackendUnavailableError, QueryError
from probewatch.services.prometheus.base import MetricsBackend

logger = structlog.get_logger()

# ── PromQL helpers ───────────────────────────────────────────────────────────


def _quote(value: str) -> str:
    """Render a PromQL double-quoted string literal."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def selector(metric: str, targets: str | list[str], label: str = "instance") -> str:
    """Build ``metric{label="x"}`` for one target or ``metric{label=~"a|b"}`` for several."""
    if isinstance(targets, str):
        targets = [targets]
    if len(targets) == 1:
        return f"{metric}{{{label}={_quote(targets[0])}}}"
    pattern = "|".join(re.escape(t) for t in targets)
    return f"{metric}{{{label}=~{_quote(pattern)}}}"


def _unix(value: datetime) -> float:
    return value.timestamp()


class PrometheusClient(MetricsBackend):
    def __init__(self, base_url: str, http_client: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=5.0, read=30.0, write=5.0, pool=5.0)
        )

    async def instant_query(self, expression: str, time: datetime | None = None) -> list[dict]:
        params = {"query": expression}
        if time is not None:
            params["time"] = _unix(time)
        data = await self._get("/api/v1/query", params)
        return data.get("result", [])

    async def range_query(
        self,
        expression: str,
        start: datetime,
        end: datetime,
        step: int,
        timeout: float | None = None,
    ) -> list[dict]:
        params = {"query": expression, "start": _unix(start), "end": _unix(end), "step": step}
        data = await self._get("/api/v1/query_range", params, timeout=timeout)
        return data.get("result", [])

    async def series(self, match: str, start: datetime, end: datetime) -> list[dict]:
        params = {"match[]": match, "start": _unix(start), "end": _unix(end)}
        data = await self._get("/api/v1/series", params)
        return data if isinstance(data, list) else []

    async def status_config(self) -> dict:
        return await self._get("/api/v1/status/config", {})

    async def health_check(self) -> bool:
        """Check if Prometheus is responsive."""
        try:
            response = await self._client.get(f"{self.base_url}/-/healthy")
            if response.status_code == 200:
                return True
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
        try:
            # Fallback: some compatible backends only serve the query API
            response = await self._client.get(f"{self.base_url}/api/v1/query", params={"query": "1"})
            return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    async def close(self):
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _get(self, path: str, params: dict, timeout: float | None = None):
        url = f"{self.base_url}{path}"
        kwargs = {"params": params}
        if timeout is not None:
            kwargs["timeout"] = timeout

        logger.debug("prometheus_request", path=path, query=params.get("query") or params.get("match[]"))
        try:
            response = await self._client.get(url, **kwargs)
        except httpx.ConnectError as e:
            raise BackendUnavailableError(f"Cannot connect to Prometheus at {self.base_url}: {e}")
        except httpx.TimeoutException:
            raise BackendUnavailableError(f"Prometheus request to {path} timed out.")
        except httpx.HTTPError as e:
            raise BackendUnavailableError(f"Prometheus request to {path} failed: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and payload.get("status") == "error":
            logger.warning(
                "prometheus_query_error",
                path=path,
                error_type=payload.get("errorType"),
                error=payload.get("error"),
            )
            raise QueryError(
                f"Prometheus rejected the query: {payload.get('error', 'unknown error')}",
                details={"error_type": payload.get("errorType"), "path": path},
            )

        if response.status_code >= 400 or not isinstance(payload, dict):
            logger.warning("prometheus_response_error", path=path, status=response.status_code)
            raise BackendUnavailableError(f"Prometheus returned error: {response.status_code}")

        return payload.get("data", {})
