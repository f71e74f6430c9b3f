from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    prometheus_status: str
    active_queries: int
    uptime_seconds: float
    version: str = "0.1.0"


class ConnectionResponse(BaseModel):
    connected: bool
    prometheus_url: str
    config_loaded: bool
