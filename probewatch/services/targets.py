"""Target discovery, current status and response-time statistics."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import structlog

from probewatch.config import Settings
from probewatch.core.exceptions import BackendUnavailableError, ProbewatchError
from probewatch.models import Sample
from probewatch.services.chunking import normalize_range, resolve_timezone
from probewatch.services.prometheus.base import MetricsBackend
from probewatch.services.prometheus.client import selector

logger = structlog.get_logger()

DISCOVERY_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class TargetState:
    target: str
    up: bool
    labels: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TargetStatus:
    status: str  # "up", "down", "unknown" or "error"
    last_check: datetime | None = None
    response_time: float | None = None  # seconds


@dataclass(frozen=True)
class ResponseTimeStats:
    average: float
    maximum: float
    minimum: float


@dataclass
class TargetMetrics:
    success: list[Sample] = field(default_factory=list)
    duration: list[tuple[datetime, float]] = field(default_factory=list)
    status_code: list[tuple[datetime, float]] = field(default_factory=list)


def _first_value(result: list[dict]) -> float | None:
    if not result:
        return None
    return float(result[0]["value"][1])


def _points(result: list[dict]) -> list[tuple[datetime, float]]:
    if not result:
        return []
    return [
        (datetime.fromtimestamp(float(ts), tz=timezone.utc), float(value))
        for ts, value in result[0].get("values", [])
    ]


class TargetService:
    def __init__(self, backend: MetricsBackend, config: Settings):
        self._backend = backend
        self._config = config
        self._tz = resolve_timezone(config.probewatch_timezone)
        self._label = config.probewatch_instance_label

    def _selector(self, metric: str, target: str) -> str:
        return selector(metric, target, label=self._label)

    async def discover_targets(self) -> list[str]:
        """List probed targets seen in the last 24 hours.

        Uses the series metadata endpoint first and falls back to an instant
        query of the probe metric when that fails.
        """
        metric = self._config.probewatch_probe_metric
        now = datetime.now(timezone.utc)
        try:
            series = await self._backend.series(metric, now - DISCOVERY_WINDOW, now)
            return sorted({s[self._label] for s in series if s.get(self._label)})
        except ProbewatchError as e:
            logger.warning("targets_series_failed", error=e.message, fallback="query")

        try:
            result = await self._backend.instant_query(metric)
        except ProbewatchError as e:
            logger.error("targets_query_failed", error=e.message)
            raise BackendUnavailableError(
                "Unable to fetch targets from Prometheus. Please check your configuration.",
                details={"cause": e.message},
            )
        return sorted({r["metric"][self._label] for r in result if r.get("metric", {}).get(self._label)})

    async def get_current_status(self) -> list[TargetState]:
        result = await self._backend.instant_query(self._config.probewatch_probe_metric)
        return [
            TargetState(
                target=r["metric"].get(self._label, ""),
                up=r["value"][1] == "1",
                labels=dict(r["metric"]),
            )
            for r in result
        ]

    async def get_target_status(self, target: str) -> TargetStatus:
        """Latest probe result for one target. Backend failures yield status "error"."""
        now = datetime.now(timezone.utc)
        try:
            result = await self._backend.instant_query(
                self._selector(self._config.probewatch_probe_metric, target), time=now
            )
            if not result:
                return TargetStatus(status="unknown")

            ts, value = result[0]["value"]
            duration = await self._backend.instant_query(
                self._selector(self._config.probewatch_duration_metric, target), time=now
            )
        except ProbewatchError as e:
            logger.warning("target_status_failed", target=target, error=e.message)
            return TargetStatus(status="error")

        return TargetStatus(
            status="up" if float(value) == 1 else "down",
            last_check=datetime.fromtimestamp(float(ts), tz=timezone.utc),
            response_time=_first_value(duration),
        )

    async def get_target_uptime(self, target: str, start: datetime, end: datetime) -> float:
        """Mean of the 1m-smoothed probe series over the range, in percent.

        Missing data and backend failures yield 0.0.
        """
        range_start, range_end = normalize_range(start, end, self._tz)
        series = self._selector(self._config.probewatch_probe_metric, target)
        try:
            result = await self._backend.range_query(f"avg_over_time({series}[1m])", range_start, range_end, 60)
        except ProbewatchError as e:
            logger.warning("target_uptime_failed", target=target, error=e.message)
            return 0.0

        values = [value for _, value in _points(result)]
        if not values:
            return 0.0
        return sum(values) / len(values) * 100

    async def get_response_time_stats(self, target: str, start: datetime, end: datetime) -> ResponseTimeStats:
        range_start, range_end = normalize_range(start, end, self._tz)
        window = int((range_end - range_start).total_seconds())
        series = self._selector(self._config.probewatch_duration_metric, target)

        avg, high, low = await asyncio.gather(
            *[
                self._backend.instant_query(f"{fn}_over_time({series}[{window}s])", time=range_end)
                for fn in ("avg", "max", "min")
            ]
        )
        return ResponseTimeStats(
            average=_first_value(avg) or 0.0,
            maximum=_first_value(high) or 0.0,
            minimum=_first_value(low) or 0.0,
        )

    async def get_target_metrics(self, target: str, start: datetime, end: datetime, step: int = 60) -> TargetMetrics:
        """Raw success, duration and HTTP status series for one target."""
        range_start, range_end = normalize_range(start, end, self._tz)
        config = self._config
        success, duration, status_code = await asyncio.gather(
            *[
                self._backend.range_query(self._selector(metric, target), range_start, range_end, step)
                for metric in (
                    config.probewatch_probe_metric,
                    config.probewatch_duration_metric,
                    config.probewatch_status_code_metric,
                )
            ]
        )
        return TargetMetrics(
            success=[Sample.from_pair(p) for p in (success[0].get("values", []) if success else [])],
            duration=_points(duration),
            status_code=_points(status_code),
        )

    async def test_connection(self) -> dict:
        try:
            return await self._backend.status_config()
        except ProbewatchError as e:
            logger.error("connection_test_failed", error=e.message)
            raise BackendUnavailableError(f"Failed to connect to Prometheus: {e.message}")
