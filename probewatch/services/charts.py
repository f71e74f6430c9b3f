"""Chunked chart series for uptime and response-time graphs."""

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

import structlog

from probewatch.core.exceptions import ProbewatchError
from probewatch.services.chunking import ChunkPolicy, chunk_range
from probewatch.services.prometheus.base import MetricsBackend
from probewatch.services.prometheus.client import selector

logger = structlog.get_logger()

MAX_POINTS_PER_CHUNK = 1000
MIN_STEP = 60


@dataclass(frozen=True)
class SeriesPoint:
    timestamp: datetime
    value: float


async def fetch_chunked_series(
    backend: MetricsBackend,
    targets: list[str],
    start: datetime,
    end: datetime,
    metric: str,
    tz: str | tzinfo | None = None,
    policy: ChunkPolicy | str = ChunkPolicy.compact,
    label: str = "instance",
    on_progress=None,
) -> list[SeriesPoint]:
    """Fetch a 1m-smoothed series averaged across ``targets``, one range query per chunk.

    Failed chunks are logged and left as gaps.
    """
    chunks = chunk_range(start, end, tz, policy)
    expression = f"avg(avg_over_time({selector(metric, targets, label=label)}[1m]))"

    points: list[SeriesPoint] = []
    for i, chunk in enumerate(chunks):
        if on_progress:
            on_progress(i + 1, len(chunks), f"Fetching chart chunk {i + 1}/{len(chunks)}")

        seconds = int(chunk.duration.total_seconds())
        step = max(MIN_STEP, seconds // MAX_POINTS_PER_CHUNK)
        try:
            result = await backend.range_query(expression, chunk.start, chunk.end, step)
        except ProbewatchError as e:
            logger.warning("chart_chunk_failed", metric=metric, chunk=i + 1, error=e.message)
            continue

        if result:
            points.extend(
                SeriesPoint(timestamp=datetime.fromtimestamp(float(ts), tz=timezone.utc), value=float(value))
                for ts, value in result[0].get("values", [])
            )

    if on_progress:
        on_progress(len(chunks), len(chunks), f"Completed: fetched {len(points)} data points")
    return sorted(points, key=lambda p: p.timestamp)


async def fetch_uptime_series(backend: MetricsBackend, targets: list[str], start: datetime, end: datetime, **kwargs) -> list[SeriesPoint]:
    """Uptime in percent."""
    metric = kwargs.pop("metric", "probe_success")
    points = await fetch_chunked_series(backend, targets, start, end, metric, **kwargs)
    return [SeriesPoint(timestamp=p.timestamp, value=p.value * 100) for p in points]


async def fetch_response_time_series(backend: MetricsBackend, targets: list[str], start: datetime, end: datetime, **kwargs) -> list[SeriesPoint]:
    """Probe duration in seconds."""
    metric = kwargs.pop("metric", "probe_duration_seconds")
    return await fetch_chunked_series(backend, targets, start, end, metric, **kwargs)
