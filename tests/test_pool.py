"""Tests for the worker pool."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from metronome.models import Every, TimedTask
from metronome.pool import TaskCompleted, WorkerPool, default_pool_size
from metronome.retry import RetryPolicy


def _task(work) -> TimedTask:
    return TimedTask.simple(Every(timedelta(seconds=1)), work)


@pytest.fixture
def reports() -> list[TaskCompleted]:
    return []


@pytest.fixture
async def pool(reports: list[TaskCompleted]):
    p = WorkerPool(2, on_complete=reports.append)
    yield p
    await p.close()


# -- Construction --------------------------------------------------------------


def test_default_pool_size_uses_cpu_count() -> None:
    with patch("metronome.pool.os.cpu_count", return_value=6):
        assert default_pool_size() == 6


def test_default_pool_size_falls_back_to_one() -> None:
    with patch("metronome.pool.os.cpu_count", return_value=None):
        assert default_pool_size() == 1


def test_rejects_empty_pool() -> None:
    with pytest.raises(ValueError):
        WorkerPool(0, on_complete=lambda _: None)


async def test_rejects_unknown_slot(pool: WorkerPool) -> None:
    with pytest.raises(IndexError):
        pool.assign(2, _task(AsyncMock()))


# -- Runs ----------------------------------------------------------------------


async def test_reports_success_with_slot_and_id(pool, reports, wait_until) -> None:
    work = AsyncMock()
    task = _task(work)

    pool.assign(1, task)
    await wait_until(lambda: reports)

    assert reports == [TaskCompleted(slot=1, task_id=task.id, outcome=reports[0].outcome)]
    assert reports[0].outcome.ok
    work.assert_awaited_once()


async def test_reports_terminal_failure(pool, reports, wait_until) -> None:
    task = _task(AsyncMock(side_effect=RuntimeError("nope")))
    task.retry_policy = RetryPolicy(max_attempts=2)

    pool.assign(0, task)
    await wait_until(lambda: reports)

    outcome = reports[0].outcome
    assert not outcome.ok
    assert outcome.attempts == 2
    assert isinstance(outcome.error, RuntimeError)


async def test_slots_run_concurrently(pool, reports, wait_until) -> None:
    gate = asyncio.Event()
    started: list[int] = []

    def _blocking(n: int):
        async def work() -> None:
            started.append(n)
            await gate.wait()

        return work

    pool.assign(0, _task(_blocking(0)))
    pool.assign(1, _task(_blocking(1)))
    await wait_until(lambda: len(started) == 2)
    assert pool.inflight == 2
    assert reports == []

    gate.set()
    await wait_until(lambda: len(reports) == 2)
    assert {r.slot for r in reports} == {0, 1}


async def test_close_abandons_inflight_runs(pool, reports, wait_until) -> None:
    started = asyncio.Event()

    async def work() -> None:
        started.set()
        await asyncio.Event().wait()

    pool.assign(0, _task(work))
    await asyncio.wait_for(started.wait(), 1)

    await pool.close()

    assert pool.inflight == 0
    assert reports == []
