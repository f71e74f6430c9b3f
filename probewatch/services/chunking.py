"""Day-aligned chunking of query time ranges."""

from datetime import datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo

from probewatch.core.exceptions import InvalidRangeError
from probewatch.models import Chunk

MAX_SINGLE_CHUNK = timedelta(hours=24)


class ChunkPolicy(str, Enum):
    compact = "compact"  # one chunk when the range fits in 24h
    midnight = "midnight"  # always split at local midnight


def resolve_timezone(tz: str | tzinfo | None) -> tzinfo:
    if tz is None:
        return timezone.utc
    if isinstance(tz, str):
        return timezone.utc if tz.upper() == "UTC" else ZoneInfo(tz)
    return tz


def ensure_aware(value: datetime, tz: str | tzinfo | None = None) -> datetime:
    """Attach ``tz`` to naive datetimes; aware datetimes are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=resolve_timezone(tz))
    return value


def normalize_range(start: datetime, end: datetime, tz: str | tzinfo | None = None) -> tuple[datetime, datetime]:
    """Truncate both ends to whole minutes.

    Raises InvalidRangeError if the range is empty before or after truncation.
    """
    start = ensure_aware(start, tz).astimezone(timezone.utc)
    end = ensure_aware(end, tz).astimezone(timezone.utc)
    if end <= start:
        raise InvalidRangeError(details={"start": start.isoformat(), "end": end.isoformat()})

    start = start.replace(second=0, microsecond=0)
    end = end.replace(second=0, microsecond=0)
    if end <= start:
        raise InvalidRangeError(
            "Time range must span at least one whole minute.",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )
    return start, end


def next_local_midnight(moment: datetime, tz: tzinfo) -> datetime:
    """The first local midnight in ``tz`` after ``moment``, as a UTC datetime."""
    local = moment.astimezone(tz)
    return datetime.combine(local.date() + timedelta(days=1), time.min, tzinfo=tz).astimezone(timezone.utc)


def chunk_range(
    start: datetime,
    end: datetime,
    tz: str | tzinfo | None = None,
    policy: ChunkPolicy | str = ChunkPolicy.compact,
) -> list[Chunk]:
    """Split ``[start, end)`` into contiguous chunks whose inner boundaries are local midnights."""
    zone = resolve_timezone(tz)
    # Same-tzinfo datetimes subtract as wall-clock times, so work in UTC
    start = ensure_aware(start, zone).astimezone(timezone.utc)
    end = ensure_aware(end, zone).astimezone(timezone.utc)
    if end <= start:
        raise InvalidRangeError(details={"start": start.isoformat(), "end": end.isoformat()})

    if ChunkPolicy(policy) is ChunkPolicy.compact and end - start <= MAX_SINGLE_CHUNK:
        return [Chunk(start=start, end=end)]

    chunks = []
    current = start
    while current < end:
        chunk_end = min(next_local_midnight(current, zone), end)
        chunks.append(Chunk(start=current, end=chunk_end))
        current = chunk_end
    return chunks
