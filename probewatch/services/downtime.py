"""Downtime query pipeline: chunk, fetch, extract, merge, aggregate."""

import asyncio
from collections.abc import Callable, Collection, Iterable
from datetime import datetime, timedelta

import structlog

from probewatch.config import Settings
from probewatch.core.exceptions import ChunkFetchError, QueryTimeoutError
from probewatch.models import AggregateResult, Chunk, DowntimeInterval, GroupDowntime
from probewatch.services.aggregator import aggregate, group_uptime
from probewatch.services.chunking import ChunkPolicy, chunk_range, normalize_range, resolve_timezone
from probewatch.services.extractor import extract_downtime
from probewatch.services.fetcher import SeriesFetcher
from probewatch.services.merger import SortOrder, merge_intervals, partition_by_target
from probewatch.services.prometheus.base import MetricsBackend
from probewatch.services.prometheus.client import selector
from probewatch.services.queries import QueryToken, QueryTracker

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, str], None]


class DowntimeService:
    """Public entry points used by the API and CLI."""

    def __init__(self, backend: MetricsBackend, config: Settings):
        self._backend = backend
        self._config = config
        self._tz = resolve_timezone(config.probewatch_timezone)
        self._policy = ChunkPolicy(config.probewatch_chunk_policy)
        self.queries = QueryTracker()
        self.fetcher = SeriesFetcher(
            backend,
            metric=config.probewatch_probe_metric,
            step=config.probewatch_query_step,
            timeout=config.probewatch_chunk_timeout,
            max_concurrency=config.probewatch_max_concurrency,
            label=config.probewatch_instance_label,
        )

    async def get_downtime_periods(
        self,
        target: str,
        start: datetime,
        end: datetime,
        on_progress: ProgressCallback | None = None,
        query_key: str | None = None,
    ) -> list[DowntimeInterval]:
        """Downtime for one target, oldest first. Any chunk failure aborts the query."""
        result = await self._run(
            [target],
            start,
            end,
            strict=True,
            order=SortOrder.ascending,
            on_progress=on_progress,
            query_key=query_key,
        )
        return result.intervals

    async def collect_group_downtime(
        self,
        targets: Iterable[str],
        start: datetime,
        end: datetime,
        on_progress: ProgressCallback | None = None,
        query_key: str | None = None,
    ) -> GroupDowntime:
        """Downtime for several targets, newest first, tolerating per-target chunk failures."""
        return await self._run(
            list(dict.fromkeys(targets)),
            start,
            end,
            strict=False,
            order=SortOrder.descending,
            on_progress=on_progress,
            query_key=query_key,
        )

    async def get_group_downtime_periods(
        self,
        targets: Iterable[str],
        start: datetime,
        end: datetime,
        on_progress: ProgressCallback | None = None,
        query_key: str | None = None,
    ) -> list[DowntimeInterval]:
        result = await self.collect_group_downtime(targets, start, end, on_progress, query_key)
        return result.intervals

    async def get_downtime_summary(
        self,
        target: str,
        start: datetime,
        end: datetime,
        min_duration: timedelta | None = None,
        exclude: Collection[tuple] = (),
        query_key: str | None = None,
    ) -> tuple[list[DowntimeInterval], AggregateResult]:
        """Downtime periods plus their uptime summary over the normalised range."""
        range_start, range_end = normalize_range(start, end, self._tz)
        intervals = await self.get_downtime_periods(target, range_start, range_end, query_key=query_key)
        summary = aggregate(
            intervals,
            range_start,
            range_end,
            target=target,
            min_duration=min_duration,
            exclude=exclude,
        )
        return intervals, summary

    def summarize_group(
        self, result: GroupDowntime, targets: Iterable[str], start: datetime, end: datetime
    ) -> tuple[dict[str, float | None], float]:
        """Per-target uptime from a group result and their mean.

        Targets with a failed chunk have no uptime and are left out of the mean.
        """
        range_start, range_end = normalize_range(start, end, self._tz)
        by_target = partition_by_target(result.intervals)
        failed = {f.target for f in result.failures}
        uptimes: dict[str, float | None] = {}
        for target in dict.fromkeys(targets):
            if target in failed:
                uptimes[target] = None
                continue
            summary = aggregate(by_target.get(target, []), range_start, range_end, target=target)
            uptimes[target] = summary.uptime_percent
        return uptimes, group_uptime(uptimes.values())

    async def get_uptime_percentage(self, target: str, start: datetime, end: datetime) -> float:
        """Backend-computed uptime percentage (0-100) over the range."""
        range_start, range_end = normalize_range(start, end, self._tz)
        window = int((range_end - range_start).total_seconds())
        series = selector(self._config.probewatch_probe_metric, target, label=self._config.probewatch_instance_label)
        result = await self._backend.instant_query(f"avg_over_time({series}[{window}s]) * 100", time=range_end)
        if not result:
            return 0.0
        value = float(result[0]["value"][1])
        return max(0.0, min(100.0, value))

    def cancel(self, query_key: str) -> bool:
        return self.queries.cancel(query_key)

    # ── Pipeline ─────────────────────────────────────────────────────────────

    async def _run(
        self,
        targets: list[str],
        start: datetime,
        end: datetime,
        strict: bool,
        order: SortOrder,
        on_progress: ProgressCallback | None,
        query_key: str | None,
    ) -> GroupDowntime:
        range_start, range_end = normalize_range(start, end, self._tz)
        chunks = chunk_range(range_start, range_end, self._tz, self._policy)
        token = self.queries.begin(query_key)

        logger.info(
            "downtime_query_started",
            targets=len(targets),
            start=range_start.isoformat(),
            end=range_end.isoformat(),
            chunks=len(chunks),
            strict=strict,
            query_key=query_key,
        )

        try:
            collect = self._collect(targets, chunks, strict, token, on_progress)
            timeout = self._config.probewatch_query_timeout
            try:
                per_chunk, failures = await asyncio.wait_for(collect, timeout) if timeout else await collect
            except asyncio.TimeoutError:
                raise QueryTimeoutError(
                    f"Downtime query did not complete within {timeout:.0f}s.",
                    details={"targets": targets, "chunks": len(chunks)},
                )

            # Drop results of a query that was superseded while in flight
            token.check()
            intervals = merge_intervals(per_chunk, order)
        finally:
            self.queries.finish(token)

        logger.info(
            "downtime_query_completed",
            targets=len(targets),
            intervals=len(intervals),
            failures=len(failures),
        )
        noun = "downtime periods" if strict else "group downtime periods"
        self._report(on_progress, len(chunks), len(chunks), f"Completed: found {len(intervals)} {noun}")
        return GroupDowntime(intervals=intervals, failures=failures)

    async def _collect(
        self,
        targets: list[str],
        chunks: list[Chunk],
        strict: bool,
        token: QueryToken,
        on_progress: ProgressCallback | None,
    ) -> tuple[list[tuple[int, list[DowntimeInterval]]], list[ChunkFetchError]]:
        async def run_chunk(index: int, chunk: Chunk):
            token.check()
            if strict:
                samples = await self.fetcher.fetch(targets, chunk)
                chunk_failures = []
            else:
                samples, chunk_failures = await self.fetcher.fetch_settled(targets, chunk)

            intervals = []
            for target in targets:
                intervals.extend(extract_downtime(samples.get(target, []), chunk.start, chunk.end, target=target))
            return index, chunk, intervals, chunk_failures

        token.check()
        tasks = []
        for index, chunk in enumerate(chunks):
            task = asyncio.create_task(run_chunk(index, chunk))
            token.attach(task)
            tasks.append(task)

        per_chunk: list[tuple[int, list[DowntimeInterval]]] = []
        failures: list[ChunkFetchError] = []
        try:
            for completed, next_done in enumerate(asyncio.as_completed(tasks), start=1):
                try:
                    index, chunk, intervals, chunk_failures = await next_done
                except asyncio.CancelledError:
                    # Chunk tasks are cancelled when a newer query takes over
                    token.check()
                    raise
                except ChunkFetchError as e:
                    logger.error("chunk_fetch_failed", target=e.target, chunk_start=e.chunk.start.isoformat(), error=str(e.cause))
                    raise
                token.check()

                for failure in chunk_failures:
                    logger.warning(
                        "chunk_fetch_failed",
                        target=failure.target,
                        chunk_start=failure.chunk.start.isoformat(),
                        error=str(failure.cause),
                        tolerated=True,
                    )
                failures.extend(chunk_failures)
                per_chunk.append((index, intervals))
                self._report(on_progress, completed, len(chunks), self._progress_message(index, len(chunks), chunk, targets))
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        return per_chunk, failures

    def _progress_message(self, index: int, total: int, chunk: Chunk, targets: list[str]) -> str:
        local_start = chunk.start.astimezone(self._tz)
        local_end = chunk.end.astimezone(self._tz)
        scope = targets[0] if len(targets) == 1 else f"{len(targets)} targets"
        return (
            f"Fetched [{scope}] chunk {index + 1}/{total}: "
            f"{local_start:%Y-%m-%d %H:%M} - {local_end:%H:%M}"
        )

    def _report(self, on_progress: ProgressCallback | None, completed: int, total: int, message: str) -> None:
        if on_progress is None:
            return
        try:
            on_progress(completed, total, message)
        except Exception:
            logger.warning("progress_callback_failed", completed=completed, total=total, exc_info=True)
