from datetime import datetime

from pydantic import BaseModel


class TargetsResponse(BaseModel):
    targets: list[str]
    total: int


class TargetState(BaseModel):
    target: str
    up: bool
    labels: dict[str, str]


class CurrentStatusResponse(BaseModel):
    targets: list[TargetState]


class TargetStatusResponse(BaseModel):
    target: str
    status: str  # "up", "down", "unknown" or "error"
    last_check: datetime | None = None
    response_time: float | None = None


class ResponseTimeResponse(BaseModel):
    target: str
    average: float
    maximum: float
    minimum: float


class GroupsResponse(BaseModel):
    groups: dict[str, list[str]]


class TargetUptimeResponse(BaseModel):
    target: str
    start: datetime
    end: datetime
    uptime_percent: float


class MetricPoint(BaseModel):
    timestamp: datetime
    value: float


class TargetMetricsResponse(BaseModel):
    target: str
    success: list[MetricPoint]
    duration: list[MetricPoint]  # seconds
    status_code: list[MetricPoint]
