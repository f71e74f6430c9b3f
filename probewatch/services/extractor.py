"""Turn up/down samples into downtime intervals."""

from collections.abc import Iterable
from datetime import datetime

from probewatch.models import DowntimeInterval, Sample


def extract_downtime(
    samples: Iterable[Sample],
    range_start: datetime,
    range_end: datetime,
    target: str = "",
) -> list[DowntimeInterval]:
    """Derive downtime intervals for one target over one chunk.

    A downtime opens at the first down sample and closes at the next up
    sample. Downtime still open after the last sample is closed at
    ``range_end``, which may leave an interval ending exactly on a chunk
    boundary. Intervals touching a boundary are not joined with the next
    chunk's leading downtime.
    """
    ordered = sorted(samples, key=lambda s: s.timestamp)
    intervals: list[DowntimeInterval] = []

    down_since: datetime | None = None
    last_ts: datetime | None = None

    for sample in ordered:
        if sample.timestamp == last_ts:
            continue
        last_ts = sample.timestamp

        if not sample.up and down_since is None:
            down_since = sample.timestamp
        elif sample.up and down_since is not None:
            if sample.timestamp > down_since:
                intervals.append(DowntimeInterval(target=target, start=down_since, end=sample.timestamp))
            down_since = None

    if down_since is not None and range_end > down_since:
        intervals.append(DowntimeInterval(target=target, start=down_since, end=range_end))

    return intervals
