from datetime import datetime, timedelta, timezone

from fastapi import Query, Request

from probewatch.core.exceptions import InvalidRangeError
from probewatch.services.downtime import DowntimeService
from probewatch.services.grouping import TIME_RANGE_PRESETS, range_from_preset
from probewatch.services.prometheus.base import MetricsBackend
from probewatch.services.targets import TargetService

DEFAULT_RANGE = timedelta(hours=24)


def get_metrics_backend(request: Request) -> MetricsBackend:
    """Return the metrics backend stored on app state during lifespan."""
    return request.app.state.metrics_backend


def get_downtime_service(request: Request) -> DowntimeService:
    return request.app.state.downtime_service


def get_target_service(request: Request) -> TargetService:
    return request.app.state.target_service


def resolve_range(
    start: datetime | None, end: datetime | None, preset: str | None = None
) -> tuple[datetime, datetime]:
    """Fill in missing range ends; the default is the 24 hours before ``end``.

    A ``preset`` such as ``"7d"`` replaces ``start`` and is measured back from ``end``.
    """
    end = end or datetime.now(timezone.utc)
    if preset is not None:
        try:
            return range_from_preset(preset, end)
        except KeyError:
            raise InvalidRangeError(
                f"Unknown time range preset: {preset}",
                details={"presets": [value for value, _, _ in TIME_RANGE_PRESETS]},
            )
    start = start or end - DEFAULT_RANGE
    return start, end


def time_range(
    start: datetime | None = Query(None, description="Range start (ISO 8601); defaults to end - 24h"),
    end: datetime | None = Query(None, description="Range end (ISO 8601); defaults to now"),
    preset: str | None = Query(None, description="Named range (1h, 6h, 12h, 2d, 7d, 4w, 3m) ending at end"),
) -> tuple[datetime, datetime]:
    return resolve_range(start, end, preset)
