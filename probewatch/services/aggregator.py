"""Uptime percentages from downtime intervals."""

from collections.abc import Collection, Iterable
from datetime import datetime, timedelta

from probewatch.core.exceptions import DegenerateRangeError
from probewatch.models import AggregateResult, DowntimeInterval


def filter_intervals(
    intervals: Iterable[DowntimeInterval],
    min_duration: timedelta | None = None,
    exclude: Collection[tuple] = (),
) -> list[DowntimeInterval]:
    """Drop intervals no longer than ``min_duration`` and those whose key is in ``exclude``."""
    kept = []
    for interval in intervals:
        if min_duration is not None and interval.duration <= min_duration:
            continue
        if interval.key in exclude:
            continue
        kept.append(interval)
    return kept


def aggregate(
    intervals: Iterable[DowntimeInterval],
    range_start: datetime,
    range_end: datetime,
    target: str | None = None,
    min_duration: timedelta | None = None,
    exclude: Collection[tuple] = (),
) -> AggregateResult:
    """Summarise downtime over ``[range_start, range_end)``.

    Interval time outside the range is not counted. Raises
    DegenerateRangeError when the range has no duration.
    """
    range_duration = range_end - range_start
    if range_duration <= timedelta(0):
        raise DegenerateRangeError(
            details={"start": range_start.isoformat(), "end": range_end.isoformat()}
        )

    counted = filter_intervals(intervals, min_duration=min_duration, exclude=exclude)

    downtime_total = timedelta(0)
    event_count = 0
    for interval in counted:
        overlap = min(interval.end, range_end) - max(interval.start, range_start)
        if overlap > timedelta(0):
            downtime_total += overlap
            event_count += 1

    uptime = 100 * (range_duration - downtime_total) / range_duration
    return AggregateResult(
        target=target,
        uptime_percent=max(0.0, min(100.0, uptime)),
        downtime_total=downtime_total,
        event_count=event_count,
    )


def group_uptime(values: Iterable[float | None]) -> float:
    """Mean of the known per-target uptimes, 0.0 if none are known."""
    known = [v for v in values if v is not None]
    if not known:
        return 0.0
    return sum(known) / len(known)
