from datetime import datetime

from pydantic import BaseModel, Field


class DowntimePeriod(BaseModel):
    target: str
    start: datetime
    end: datetime
    duration_minutes: float


class DowntimeSummary(BaseModel):
    uptime_percent: float
    downtime_total_seconds: float
    event_count: int


class DowntimeResponse(BaseModel):
    target: str
    start: datetime
    end: datetime
    periods: list[DowntimePeriod]
    summary: DowntimeSummary


class GroupDowntimeRequest(BaseModel):
    targets: list[str] = Field(min_length=1)
    start: datetime | None = None
    end: datetime | None = None
    preset: str | None = None
    query_key: str | None = None


class ChunkFailure(BaseModel):
    target: str
    chunk_start: datetime
    chunk_end: datetime
    error: str


class GroupDowntimeResponse(BaseModel):
    targets: list[str]
    start: datetime
    end: datetime
    periods: list[DowntimePeriod]
    counts: dict[str, int]  # target → number of periods
    uptime: dict[str, float | None]  # None when a chunk for the target failed
    group_uptime_percent: float
    failures: list[ChunkFailure]
    complete: bool


class UptimeResponse(BaseModel):
    target: str
    start: datetime
    end: datetime
    uptime_percent: float


class CancelResponse(BaseModel):
    query_key: str
    cancelled: bool
