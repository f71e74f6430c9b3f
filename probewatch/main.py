from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from probewatch.api.v1.router import v1_router
from probewatch.config import Settings, settings
from probewatch.core.exceptions import ProbewatchError, probewatch_error_handler
from probewatch.core.middleware import RequestLoggingMiddleware
from probewatch.services.downtime import DowntimeService
from probewatch.services.prometheus.client import PrometheusClient
from probewatch.services.targets import TargetService

_NAME_TO_LEVEL = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "warn": 30,
    "error": 40,
    "critical": 50,
}


def configure_logging(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_NAME_TO_LEVEL.get(level.lower(), 20)),
    )


configure_logging(settings.probewatch_log_level)

logger = structlog.get_logger()


def build_backend(config: Settings) -> PrometheusClient:
    """Create the shared httpx client and Prometheus backend from explicit settings."""
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=config.probewatch_http_connect_timeout,
            read=config.probewatch_http_read_timeout,
            write=5.0,
            pool=5.0,
        )
    )
    return PrometheusClient(base_url=config.prometheus_base_url, http_client=http_client)


def wire_services(app: FastAPI, backend, config: Settings) -> None:
    app.state.settings = config
    app.state.metrics_backend = backend
    app.state.downtime_service = DowntimeService(backend, config)
    app.state.target_service = TargetService(backend, config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    backend = build_backend(settings)
    wire_services(app, backend, settings)

    logger.info(
        "probewatch_starting",
        prometheus_url=settings.prometheus_base_url,
        timezone=settings.probewatch_timezone,
        chunk_policy=settings.probewatch_chunk_policy,
    )
    yield

    await backend.close()
    logger.info("probewatch_stopping")


app = FastAPI(
    title="probewatch",
    description="Uptime and downtime API over Prometheus blackbox probe metrics",
    version="0.1.0",
    lifespan=lifespan,
)

# Exception handler
app.add_exception_handler(ProbewatchError, probewatch_error_handler)

# Middleware (Starlette: last-added = outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.probewatch_cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(v1_router)


@app.get("/")
async def root():
    return {"service": "probewatch", "version": "0.1.0"}
