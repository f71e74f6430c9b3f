from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from probewatch.dependencies import get_metrics_backend, time_range
from probewatch.schemas.charts import ChartPoint, ChartResponse
from probewatch.services.charts import fetch_response_time_series, fetch_uptime_series
from probewatch.services.prometheus.base import MetricsBackend

router = APIRouter()


def _chart_options(request: Request) -> dict:
    config = request.app.state.settings
    return {
        "tz": config.probewatch_timezone,
        "policy": config.probewatch_chunk_policy,
        "label": config.probewatch_instance_label,
    }


@router.get("/charts/uptime")
async def uptime_chart(
    request: Request,
    targets: list[str] = Query(...),
    range_: tuple[datetime, datetime] = Depends(time_range),
    backend: MetricsBackend = Depends(get_metrics_backend),
) -> ChartResponse:
    """Uptime percentage over time, averaged across ``targets``."""
    start, end = range_
    metric = request.app.state.settings.probewatch_probe_metric
    points = await fetch_uptime_series(backend, targets, start, end, metric=metric, **_chart_options(request))
    return ChartResponse(
        metric=metric,
        targets=targets,
        points=[ChartPoint(timestamp=p.timestamp, value=p.value) for p in points],
    )


@router.get("/charts/response-time")
async def response_time_chart(
    request: Request,
    targets: list[str] = Query(...),
    range_: tuple[datetime, datetime] = Depends(time_range),
    backend: MetricsBackend = Depends(get_metrics_backend),
) -> ChartResponse:
    """Probe duration in seconds over time, averaged across ``targets``."""
    start, end = range_
    metric = request.app.state.settings.probewatch_duration_metric
    points = await fetch_response_time_series(backend, targets, start, end, metric=metric, **_chart_options(request))
    return ChartResponse(
        metric=metric,
        targets=targets,
        points=[ChartPoint(timestamp=p.timestamp, value=p.value) for p in points],
    )
