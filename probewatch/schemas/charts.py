from datetime import datetime

from pydantic import BaseModel


class ChartPoint(BaseModel):
    timestamp: datetime
    value: float


class ChartResponse(BaseModel):
    metric: str
    targets: list[str]
    points: list[ChartPoint]
