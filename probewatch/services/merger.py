"""Combine per-chunk downtime results into one ordered, duplicate-free list."""

from collections.abc import Iterable, Sequence
from enum import Enum

from probewatch.models import DowntimeInterval


class SortOrder(str, Enum):
    ascending = "asc"  # single-target views
    descending = "desc"  # group views, most recent first


def merge_intervals(
    per_chunk: Iterable[tuple[int, Sequence[DowntimeInterval]]],
    order: SortOrder | str = SortOrder.ascending,
) -> list[DowntimeInterval]:
    """Merge chunk results that may have completed out of order.

    Results are put back in chunk order, concatenated and de-duplicated on
    ``(target, start, end)`` keeping the first occurrence. Adjacent intervals
    meeting at a chunk boundary stay separate.
    """
    ordered = sorted(per_chunk, key=lambda item: item[0])

    seen: set[tuple] = set()
    merged: list[DowntimeInterval] = []
    for _, intervals in ordered:
        for interval in intervals:
            if interval.key in seen:
                continue
            seen.add(interval.key)
            merged.append(interval)

    descending = SortOrder(order) is SortOrder.descending
    return sorted(merged, key=lambda i: i.start, reverse=descending)


def partition_by_target(intervals: Iterable[DowntimeInterval]) -> dict[str, list[DowntimeInterval]]:
    """Group intervals by target, keeping their relative order."""
    result: dict[str, list[DowntimeInterval]] = {}
    for interval in intervals:
        result.setdefault(interval.target, []).append(interval)
    return result
