from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query

from probewatch.dependencies import get_downtime_service, resolve_range, time_range
from probewatch.models import DowntimeInterval
from probewatch.schemas.downtime import (
    CancelResponse,
    ChunkFailure,
    DowntimePeriod,
    DowntimeResponse,
    DowntimeSummary,
    GroupDowntimeRequest,
    GroupDowntimeResponse,
    UptimeResponse,
)
from probewatch.services.downtime import DowntimeService
from probewatch.services.merger import partition_by_target

router = APIRouter()


def _period(interval: DowntimeInterval) -> DowntimePeriod:
    return DowntimePeriod(
        target=interval.target,
        start=interval.start,
        end=interval.end,
        duration_minutes=interval.duration_minutes,
    )


@router.get("/targets/{target:path}/downtime")
async def target_downtime(
    target: str,
    range_: tuple[datetime, datetime] = Depends(time_range),
    min_duration_minutes: float | None = Query(None, ge=0, description="Ignore downtimes this short in the summary"),
    query_key: str | None = Query(None, description="View identifier; a newer query with the same key supersedes this one"),
    service: DowntimeService = Depends(get_downtime_service),
) -> DowntimeResponse:
    """Downtime periods for one target, oldest first, with an uptime summary."""
    start, end = range_
    min_duration = timedelta(minutes=min_duration_minutes) if min_duration_minutes is not None else None
    intervals, summary = await service.get_downtime_summary(
        target, start, end, min_duration=min_duration, query_key=query_key
    )

    return DowntimeResponse(
        target=target,
        start=start,
        end=end,
        periods=[_period(i) for i in intervals],
        summary=DowntimeSummary(
            uptime_percent=summary.uptime_percent,
            downtime_total_seconds=summary.downtime_total.total_seconds(),
            event_count=summary.event_count,
        ),
    )


@router.get("/targets/{target:path}/uptime")
async def target_uptime(
    target: str,
    range_: tuple[datetime, datetime] = Depends(time_range),
    service: DowntimeService = Depends(get_downtime_service),
) -> UptimeResponse:
    start, end = range_
    pct = await service.get_uptime_percentage(target, start, end)
    return UptimeResponse(target=target, start=start, end=end, uptime_percent=pct)


@router.post("/groups/downtime")
async def group_downtime(
    body: GroupDowntimeRequest,
    service: DowntimeService = Depends(get_downtime_service),
) -> GroupDowntimeResponse:
    """Downtime across several targets, newest first. Chunk failures are reported, not raised."""
    start, end = resolve_range(body.start, body.end, body.preset)
    result = await service.collect_group_downtime(body.targets, start, end, query_key=body.query_key)
    by_target = partition_by_target(result.intervals)
    uptime, group_uptime_percent = service.summarize_group(result, body.targets, start, end)

    return GroupDowntimeResponse(
        targets=body.targets,
        start=start,
        end=end,
        periods=[_period(i) for i in result.intervals],
        counts={t: len(by_target.get(t, [])) for t in body.targets},
        uptime=uptime,
        group_uptime_percent=group_uptime_percent,
        failures=[
            ChunkFailure(
                target=f.target,
                chunk_start=f.chunk.start,
                chunk_end=f.chunk.end,
                error=str(f.cause),
            )
            for f in result.failures
        ],
        complete=result.complete,
    )


@router.delete("/queries/{query_key}")
async def cancel_query(
    query_key: str,
    service: DowntimeService = Depends(get_downtime_service),
) -> CancelResponse:
    """Cancel the in-flight downtime query registered under ``query_key``."""
    return CancelResponse(query_key=query_key, cancelled=service.cancel(query_key))
