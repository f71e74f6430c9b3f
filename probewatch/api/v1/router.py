from fastapi import APIRouter

from probewatch.api.v1.charts import router as charts_router
from probewatch.api.v1.downtime import router as downtime_router
from probewatch.api.v1.health import router as health_router
from probewatch.api.v1.targets import router as targets_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(health_router, tags=["Health"])
# Fixed /targets/status must be registered before the {target:path} routes
v1_router.include_router(targets_router, tags=["Targets"])
v1_router.include_router(downtime_router, tags=["Downtime"])
v1_router.include_router(charts_router, tags=["Charts"])
