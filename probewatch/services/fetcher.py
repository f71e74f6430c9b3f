"""Per-chunk retrieval of up/down samples from the metrics backend."""

import asyncio
from collections.abc import Iterable

import structlog

from probewatch.core.exceptions import ChunkFetchError, ProbewatchError
from probewatch.models import Chunk, Sample
from probewatch.services.prometheus.base import MetricsBackend
from probewatch.services.prometheus.client import selector

logger = structlog.get_logger()


class SeriesFetcher:
    """Issues one range query per (target, chunk) pair.

    Concurrent calls are bounded by ``max_concurrency``; each call carries its
    own ``timeout`` independent of the client's default read timeout.
    """

    def __init__(
        self,
        backend: MetricsBackend,
        metric: str = "probe_success",
        step: int = 60,
        timeout: float = 60.0,
        max_concurrency: int = 8,
        label: str = "instance",
    ):
        self._backend = backend
        self.metric = metric
        self.step = step
        self.timeout = timeout
        self.label = label
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def fetch_one(self, target: str, chunk: Chunk) -> list[Sample]:
        """Fetch samples for one target over one chunk, wrapping failures in ChunkFetchError."""
        expression = selector(self.metric, target, label=self.label)
        async with self._semaphore:
            try:
                result = await self._backend.range_query(
                    expression, chunk.start, chunk.end, self.step, timeout=self.timeout
                )
            except ProbewatchError as e:
                raise ChunkFetchError(target, chunk, e) from e

        if not result:
            return []
        try:
            return [Sample.from_pair(pair) for pair in result[0].get("values", [])]
        except (TypeError, ValueError) as e:
            raise ChunkFetchError(target, chunk, e) from e

    async def fetch_settled(
        self, targets: Iterable[str], chunk: Chunk
    ) -> tuple[dict[str, list[Sample]], list[ChunkFetchError]]:
        """Fetch every target concurrently; failed targets map to an empty list."""
        targets = list(dict.fromkeys(targets))
        outcomes = await asyncio.gather(
            *[self.fetch_one(t, chunk) for t in targets], return_exceptions=True
        )

        samples: dict[str, list[Sample]] = {}
        failures: list[ChunkFetchError] = []
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, ChunkFetchError):
                failures.append(outcome)
                samples[target] = []
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                samples[target] = outcome
        return samples, failures

    async def fetch(self, targets: Iterable[str], chunk: Chunk) -> dict[str, list[Sample]]:
        """Fetch every target, then raise the first ChunkFetchError if any call failed."""
        samples, failures = await self.fetch_settled(targets, chunk)
        if failures:
            raise failures[0]
        return samples
