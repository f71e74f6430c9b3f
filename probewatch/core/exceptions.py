from fastapi import Request
from fastapi.responses import JSONResponse


class ProbewatchError(Exception):
    """Base exception for probewatch errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status: int = 500,
        details: dict | None = None,
    ):
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        result = {
            "error": {
                "code": self.code,
                "message": self.message,
                "status": self.status,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result


class InvalidRangeError(ProbewatchError):
    def __init__(self, message: str = "Time range end must be after its start.", details: dict | None = None):
        super().__init__(code="invalid_range", message=message, status=400, details=details)


class DegenerateRangeError(ProbewatchError):
    def __init__(self, message: str = "Cannot aggregate over a zero-length time range.", details: dict | None = None):
        super().__init__(code="degenerate_range", message=message, status=400, details=details)


class BackendUnavailableError(ProbewatchError):
    def __init__(self, message: str = "Metrics backend is unavailable.", details: dict | None = None):
        super().__init__(
            code="backend_unavailable",
            message=message,
            status=503,
            details=details or {"suggestion": "Check that Prometheus is reachable at the configured URL."},
        )


class QueryError(ProbewatchError):
    def __init__(self, message: str = "Metrics query failed.", details: dict | None = None):
        super().__init__(code="query_failed", message=message, status=502, details=details)


class ChunkFetchError(ProbewatchError):
    """A range query for one (target, chunk) pair failed."""

    def __init__(self, target: str, chunk, cause: Exception):
        self.target = target
        self.chunk = chunk
        self.cause = cause
        super().__init__(
            code="chunk_fetch_failed",
            message=f"Failed to fetch samples for {target} between {chunk.start.isoformat()} and {chunk.end.isoformat()}: {cause}",
            status=502,
            details={
                "target": target,
                "chunk_start": chunk.start.isoformat(),
                "chunk_end": chunk.end.isoformat(),
            },
        )


class QueryCancelledError(ProbewatchError):
    def __init__(self, message: str = "Query was superseded by a newer request.", details: dict | None = None):
        super().__init__(code="query_cancelled", message=message, status=409, details=details)


class QueryTimeoutError(ProbewatchError):
    def __init__(self, message: str = "Query did not complete in time.", details: dict | None = None):
        super().__init__(code="query_timeout", message=message, status=504, details=details)


async def probewatch_error_handler(request: Request, exc: ProbewatchError) -> JSONResponse:
    """Global exception handler for ProbewatchError and subclasses."""
    return JSONResponse(status_code=exc.status, content=exc.to_dict())
