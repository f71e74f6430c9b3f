"""Generation tracking so a newer query for the same view supersedes older ones."""

import asyncio
import itertools

import structlog

from probewatch.core.exceptions import QueryCancelledError

logger = structlog.get_logger()


class QueryToken:
    """Handle for one in-flight query; owns the chunk tasks it spawned."""

    def __init__(self, key: str | None, generation: int, tracker: "QueryTracker"):
        self.key = key
        self.generation = generation
        self._tracker = tracker
        self._tasks: set[asyncio.Task] = set()

    @property
    def stale(self) -> bool:
        return self._tracker.is_stale(self)

    def attach(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def abort(self) -> None:
        for task in list(self._tasks):
            if not task.done():
                task.cancel()

    def check(self) -> None:
        """Raise QueryCancelledError if a newer query (or cancel) replaced this one."""
        if self.stale:
            raise QueryCancelledError(details={"query_key": self.key, "generation": self.generation})


class QueryTracker:
    """Keeps the current generation per query key.

    Queries without a key are never superseded.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._active: dict[str, QueryToken] = {}

    def begin(self, key: str | None = None) -> QueryToken:
        token = QueryToken(key, next(self._counter), self)
        if key is None:
            return token

        previous = self._active.get(key)
        self._active[key] = token
        if previous is not None:
            previous.abort()
            logger.info("query_superseded", query_key=key, generation=previous.generation)
        return token

    def cancel(self, key: str) -> bool:
        """Supersede the active query for ``key`` without starting a new one."""
        previous = self._active.pop(key, None)
        if previous is None:
            return False
        previous.abort()
        logger.info("query_cancelled", query_key=key, generation=previous.generation)
        return True

    def finish(self, token: QueryToken) -> None:
        if token.key is not None and self._active.get(token.key) is token:
            del self._active[token.key]

    def is_stale(self, token: QueryToken) -> bool:
        if token.key is None:
            return False
        return self._active.get(token.key) is not token

    def active_keys(self) -> list[str]:
        return sorted(self._active)
