"""Value objects passed through the downtime pipeline."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True)
class Sample:
    """A single up/down observation for one target."""

    timestamp: datetime
    up: bool

    @classmethod
    def from_pair(cls, pair) -> "Sample":
        """Build a sample from a Prometheus matrix pair ``[unix_seconds, "value"]``."""
        ts, value = pair
        return cls(
            timestamp=datetime.fromtimestamp(float(ts), tz=timezone.utc),
            up=float(value) != 0.0,
        )


@dataclass(frozen=True)
class Chunk:
    """Half-open ``[start, end)`` sub-range of a query."""

    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class DowntimeInterval:
    """A maximal span during which a target was observed down."""

    target: str
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"Downtime interval must end after it starts ({self.start} >= {self.end})")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60

    @property
    def key(self) -> tuple[str, datetime, datetime]:
        return (self.target, self.start, self.end)


@dataclass(frozen=True)
class AggregateResult:
    """Uptime summary derived from a set of downtime intervals."""

    target: str | None
    uptime_percent: float
    downtime_total: timedelta
    event_count: int


@dataclass
class GroupDowntime:
    """Best-effort result of a multi-target downtime query."""

    intervals: list[DowntimeInterval] = field(default_factory=list)
    failures: list = field(default_factory=list)  # ChunkFetchError instances

    @property
    def complete(self) -> bool:
        return not self.failures
