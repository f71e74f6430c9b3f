from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Metrics backend
    prometheus_base_url: str = "http://localhost:9090"

    # Logging
    probewatch_log_level: str = "info"

    # Chunking: local day boundaries are computed in this timezone
    probewatch_timezone: str = "UTC"
    probewatch_chunk_policy: str = "compact"  # "compact" or "midnight"

    # Range query resolution (seconds)
    probewatch_query_step: int = 60

    # HTTP client timeouts (seconds)
    probewatch_http_connect_timeout: float = 5.0
    probewatch_http_read_timeout: float = 30.0
    probewatch_chunk_timeout: float = 60.0  # per range query, overrides read timeout
    probewatch_query_timeout: float | None = 600.0  # whole downtime query (None = no limit)

    # Concurrent range queries per pipeline
    probewatch_max_concurrency: int = 8

    # Series names and target label
    probewatch_probe_metric: str = "probe_success"
    probewatch_duration_metric: str = "probe_duration_seconds"
    probewatch_status_code_metric: str = "probe_http_status_code"
    probewatch_instance_label: str = "instance"

    # CORS
    probewatch_cors_origins: str = "http://localhost:3000"

    model_config = {"env_prefix": "", "case_sensitive": False, "env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
