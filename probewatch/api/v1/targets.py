from datetime import datetime

from fastapi import APIRouter, Depends

from probewatch.dependencies import get_target_service, time_range
from probewatch.schemas.targets import (
    CurrentStatusResponse,
    GroupsResponse,
    MetricPoint,
    ResponseTimeResponse,
    TargetMetricsResponse,
    TargetState,
    TargetStatusResponse,
    TargetsResponse,
    TargetUptimeResponse,
)
from probewatch.services.grouping import build_groups
from probewatch.services.targets import TargetService

router = APIRouter()


@router.get("/targets")
async def list_targets(service: TargetService = Depends(get_target_service)) -> TargetsResponse:
    targets = await service.discover_targets()
    return TargetsResponse(targets=targets, total=len(targets))


@router.get("/targets/status")
async def current_status(service: TargetService = Depends(get_target_service)) -> CurrentStatusResponse:
    """Latest probe result for every target."""
    states = await service.get_current_status()
    return CurrentStatusResponse(
        targets=[TargetState(target=s.target, up=s.up, labels=s.labels) for s in states]
    )


@router.get("/targets/{target:path}/status")
async def target_status(
    target: str,
    service: TargetService = Depends(get_target_service),
) -> TargetStatusResponse:
    status = await service.get_target_status(target)
    return TargetStatusResponse(
        target=target,
        status=status.status,
        last_check=status.last_check,
        response_time=status.response_time,
    )


@router.get("/targets/{target:path}/response-time")
async def target_response_time(
    target: str,
    range_: tuple[datetime, datetime] = Depends(time_range),
    service: TargetService = Depends(get_target_service),
) -> ResponseTimeResponse:
    start, end = range_
    stats = await service.get_response_time_stats(target, start, end)
    return ResponseTimeResponse(target=target, average=stats.average, maximum=stats.maximum, minimum=stats.minimum)


@router.get("/targets/{target:path}/availability")
async def target_availability(
    target: str,
    range_: tuple[datetime, datetime] = Depends(time_range),
    service: TargetService = Depends(get_target_service),
) -> TargetUptimeResponse:
    """Mean of the 1m-smoothed probe series, as shown on the target detail view."""
    start, end = range_
    pct = await service.get_target_uptime(target, start, end)
    return TargetUptimeResponse(target=target, start=start, end=end, uptime_percent=pct)


@router.get("/targets/{target:path}/metrics")
async def target_metrics(
    target: str,
    range_: tuple[datetime, datetime] = Depends(time_range),
    service: TargetService = Depends(get_target_service),
) -> TargetMetricsResponse:
    """Raw success, duration and HTTP status series for one target."""
    start, end = range_
    metrics = await service.get_target_metrics(target, start, end)
    return TargetMetricsResponse(
        target=target,
        success=[MetricPoint(timestamp=s.timestamp, value=1.0 if s.up else 0.0) for s in metrics.success],
        duration=[MetricPoint(timestamp=ts, value=v) for ts, v in metrics.duration],
        status_code=[MetricPoint(timestamp=ts, value=v) for ts, v in metrics.status_code],
    )


@router.get("/groups")
async def derived_groups(service: TargetService = Depends(get_target_service)) -> GroupsResponse:
    """Discovered targets grouped by root domain."""
    targets = await service.discover_targets()
    return GroupsResponse(groups=build_groups(targets))
