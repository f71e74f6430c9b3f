import time

from fastapi import APIRouter, Depends, Request

from probewatch.dependencies import get_downtime_service, get_metrics_backend, get_target_service
from probewatch.schemas.health import ConnectionResponse, HealthResponse
from probewatch.services.downtime import DowntimeService
from probewatch.services.prometheus.base import MetricsBackend
from probewatch.services.targets import TargetService

router = APIRouter()

_start_time = time.monotonic()


@router.get("/health")
async def health_check(
    backend: MetricsBackend = Depends(get_metrics_backend),
    downtime: DowntimeService = Depends(get_downtime_service),
) -> HealthResponse:
    prometheus_ok = await backend.health_check()

    return HealthResponse(
        status="ok" if prometheus_ok else "degraded",
        prometheus_status="connected" if prometheus_ok else "disconnected",
        active_queries=len(downtime.queries.active_keys()),
        uptime_seconds=round(time.monotonic() - _start_time, 1),
    )


@router.get("/connection")
async def connection_test(
    request: Request,
    service: TargetService = Depends(get_target_service),
) -> ConnectionResponse:
    """Fetch the backend config; raises BackendUnavailableError if unreachable."""
    config = await service.test_connection()
    return ConnectionResponse(
        connected=True,
        prometheus_url=request.app.state.settings.prometheus_base_url,
        config_loaded=bool(config.get("yaml")),
    )
