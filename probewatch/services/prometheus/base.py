from abc import ABC, abstractmethod
from datetime import datetime


class MetricsBackend(ABC):
    @abstractmethod
    async def instant_query(self, expression: str, time: datetime | None = None) -> list[dict]:
        """Evaluate an expression at a single instant and return the result vector."""
        ...

    @abstractmethod
    async def range_query(
        self,
        expression: str,
        start: datetime,
        end: datetime,
        step: int,
        timeout: float | None = None,
    ) -> list[dict]:
        """Evaluate an expression over a range and return the result matrix."""
        ...

    @abstractmethod
    async def series(self, match: str, start: datetime, end: datetime) -> list[dict]:
        """List label sets of series matching a selector."""
        ...

    @abstractmethod
    async def status_config(self) -> dict:
        """Return the backend's loaded configuration."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if backend is responsive."""
        ...
