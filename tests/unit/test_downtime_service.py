"""Unit tests for the downtime pipeline against the fake Prometheus."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from probewatch.config import Settings
from probewatch.core.exceptions import (
    ChunkFetchError,
    InvalidRangeError,
    QueryCancelledError,
    QueryTimeoutError,
)
from probewatch.services.downtime import DowntimeService

T0 = datetime(2025, 6, 21, tzinfo=timezone.utc)
START = T0 + timedelta(hours=20)
END = T0 + timedelta(hours=46)

# 10-minute samples from START to END; down 20:30-21:00 and 23:40-00:30 (across midnight)
PATTERN = "".join("0" if i in {3, 4, 5, 22, 23, 24, 25, 26} else "1" for i in range(157))


def _at(hour: int, minute: int = 0) -> datetime:
    return T0 + timedelta(hours=hour, minutes=minute)


@pytest.fixture
def service(prom_backend, test_settings):
    return DowntimeService(prom_backend, test_settings)


async def test_downtime_across_midnight_chunks(service, prom_data):
    prom_data.add_probe("a.com", int(START.timestamp()), PATTERN, step=600)
    progress = []

    intervals = await service.get_downtime_periods("a.com", START, END, on_progress=lambda *a: progress.append(a))

    assert [(i.start, i.end) for i in intervals] == [
        (_at(20, 30), _at(21)),
        (_at(23, 40), _at(24)),
        (_at(24), _at(24, 30)),
    ]
    assert all(i.target == "a.com" for i in intervals)
    assert len(prom_data.range_calls) == 2
    assert len(progress) == 3
    assert progress[-1] == (2, 2, "Completed: found 3 downtime periods")
    assert [p[0] for p in progress[:2]] == [1, 2]


async def test_summary_uses_normalised_range(service, prom_data):
    prom_data.add_probe("a.com", int(START.timestamp()), PATTERN, step=600)

    intervals, summary = await service.get_downtime_summary("a.com", START + timedelta(seconds=20), END)

    assert len(intervals) == 3
    assert summary.event_count == 3
    assert summary.downtime_total == timedelta(minutes=80)
    assert summary.uptime_percent == pytest.approx(100 * (1 - 80 / (26 * 60)))


async def test_summary_min_duration_filter(service, prom_data):
    prom_data.add_probe("a.com", int(START.timestamp()), PATTERN, step=600)

    _, summary = await service.get_downtime_summary("a.com", START, END, min_duration=timedelta(minutes=25))

    assert summary.event_count == 2
    assert summary.downtime_total == timedelta(minutes=60)


async def test_no_samples_no_downtime(service):
    assert await service.get_downtime_periods("quiet.com", START, END) == []


async def test_invalid_range_rejected_before_fetching(service, prom_data):
    with pytest.raises(InvalidRangeError):
        await service.get_downtime_periods("a.com", END, START)
    assert prom_data.range_calls == []


async def test_strict_mode_raises_chunk_failure(service, prom_data):
    prom_data.failing_targets.add("b.com")

    with pytest.raises(ChunkFetchError) as exc:
        await service.get_downtime_periods("b.com", START, END)
    assert exc.value.target == "b.com"
    assert service.queries.active_keys() == []


async def test_group_query_tolerates_failed_target(service, prom_data):
    prom_data.add_probe("a.com", int(START.timestamp()), PATTERN, step=600)
    prom_data.add_probe("b.com", int(START.timestamp()), PATTERN, step=600)
    prom_data.failing_targets.add("b.com")
    progress = []

    result = await service.collect_group_downtime(
        ["a.com", "b.com", "a.com"], START, END, on_progress=lambda *a: progress.append(a)
    )

    assert not result.complete
    assert {f.target for f in result.failures} == {"b.com"}
    assert len(result.failures) == 2
    assert {i.target for i in result.intervals} == {"a.com"}
    starts = [i.start for i in result.intervals]
    assert starts == sorted(starts, reverse=True)
    assert progress[-1] == (2, 2, "Completed: found 3 group downtime periods")


async def test_group_periods_merges_targets_newest_first(service, prom_data):
    prom_data.add_probe("a.com", int(START.timestamp()), "1001", step=600)
    prom_data.add_probe("b.com", int(START.timestamp()), "1100", step=600)

    intervals = await service.get_group_downtime_periods(["a.com", "b.com"], START, START + timedelta(hours=1))

    assert [(i.target, i.start, i.end) for i in intervals] == [
        ("b.com", _at(20, 20), _at(21)),
        ("a.com", _at(20, 10), _at(20, 30)),
    ]


async def test_newer_query_supersedes_older(service, prom_data):
    prom_data.add_probe("a.com", int(START.timestamp()), "1001", step=600)
    prom_data.delays["a.com"] = 0.5
    end = START + timedelta(hours=1)

    first = asyncio.create_task(service.get_downtime_periods("a.com", START, end, query_key="view"))
    await asyncio.sleep(0.05)
    second = await service.get_downtime_periods("a.com", START, end, query_key="view")

    with pytest.raises(QueryCancelledError):
        await first
    assert len(second) == 1
    assert service.queries.active_keys() == []


async def test_cancel_by_key(service, prom_data):
    prom_data.add_probe("a.com", int(START.timestamp()), "1001", step=600)
    prom_data.delays["a.com"] = 0.5

    task = asyncio.create_task(
        service.get_downtime_periods("a.com", START, START + timedelta(hours=1), query_key="dash")
    )
    await asyncio.sleep(0.05)

    assert service.cancel("dash") is True
    with pytest.raises(QueryCancelledError):
        await task
    assert service.cancel("dash") is False


async def test_query_timeout(prom_backend, prom_data):
    config = Settings(probewatch_timezone="UTC", probewatch_query_timeout=0.1)
    service = DowntimeService(prom_backend, config)
    prom_data.add_probe("a.com", int(START.timestamp()), "1", step=600)
    prom_data.delays["a.com"] = 1.0

    with pytest.raises(QueryTimeoutError) as exc:
        await service.get_downtime_periods("a.com", START, START + timedelta(hours=1))
    assert exc.value.status == 504


async def test_failing_progress_callback_does_not_abort(service, prom_data):
    prom_data.add_probe("a.com", int(START.timestamp()), "1001", step=600)

    def broken(completed, total, message):
        raise RuntimeError("ui gone")

    intervals = await service.get_downtime_periods("a.com", START, START + timedelta(hours=1), on_progress=broken)
    assert len(intervals) == 1


async def test_uptime_percentage(service, prom_data):
    prom_data.add_probe("a.com", int((T0 + timedelta(minutes=10)).timestamp()), "1010", step=600)

    assert await service.get_uptime_percentage("a.com", T0, T0 + timedelta(hours=1)) == pytest.approx(50.0)


async def test_uptime_percentage_without_data_is_zero(service):
    assert await service.get_uptime_percentage("nobody.com", T0, T0 + timedelta(hours=1)) == 0.0


async def test_query_cancelled_before_scheduling_sends_nothing(service, prom_data):
    prom_data.add_probe("a.com", int(START.timestamp()), "1001", step=600)

    task = asyncio.create_task(
        service.get_downtime_periods("a.com", START, START + timedelta(hours=1), query_key="early")
    )
    await asyncio.sleep(0)
    service.cancel("early")

    with pytest.raises(QueryCancelledError):
        await task
    assert prom_data.range_calls == []


async def test_summarize_group_skips_failed_targets(service, prom_data):
    prom_data.add_probe("a.com", int(START.timestamp()), "1001", step=600)
    prom_data.add_probe("c.com", int(START.timestamp()), "1111", step=600)
    prom_data.failing_targets.add("b.com")
    end = START + timedelta(hours=1)
    targets = ["a.com", "b.com", "c.com"]

    result = await service.collect_group_downtime(targets, START, end)
    uptimes, mean = service.summarize_group(result, targets, START, end)

    assert uptimes["a.com"] == pytest.approx(100 * 40 / 60)
    assert uptimes["b.com"] is None
    assert uptimes["c.com"] == 100.0
    assert mean == pytest.approx((100 * 40 / 60 + 100.0) / 2)
