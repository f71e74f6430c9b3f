import asyncio

import pytest

from probewatch.core.exceptions import QueryCancelledError
from probewatch.services.queries import QueryTracker


def test_generations_increase():
    tracker = QueryTracker()
    first = tracker.begin("view")
    second = tracker.begin("other")
    assert second.generation > first.generation


def test_newer_query_makes_older_stale():
    tracker = QueryTracker()
    old = tracker.begin("view")
    new = tracker.begin("view")

    assert old.stale
    assert not new.stale
    with pytest.raises(QueryCancelledError) as exc:
        old.check()
    assert exc.value.details == {"query_key": "view", "generation": old.generation}
    new.check()


def test_unkeyed_queries_are_never_stale():
    tracker = QueryTracker()
    a = tracker.begin()
    tracker.begin()
    assert not a.stale
    assert tracker.active_keys() == []


def test_finish_only_clears_current_token():
    tracker = QueryTracker()
    old = tracker.begin("view")
    new = tracker.begin("view")

    tracker.finish(old)
    assert tracker.active_keys() == ["view"]
    tracker.finish(new)
    assert tracker.active_keys() == []


def test_cancel():
    tracker = QueryTracker()
    token = tracker.begin("view")

    assert tracker.cancel("view") is True
    assert token.stale
    assert tracker.cancel("view") is False


async def test_superseding_cancels_attached_tasks():
    tracker = QueryTracker()
    token = tracker.begin("view")
    task = asyncio.create_task(asyncio.sleep(10))
    token.attach(task)

    tracker.begin("view")
    with pytest.raises(asyncio.CancelledError):
        await task
    assert task.cancelled()
