"""Tests for Clock — heartbeat windows and APScheduler lifecycle."""

import asyncio
from datetime import timedelta
from unittest.mock import patch

import pytest

from metronome.clock import Clock, start_clock
from metronome.models import Every, TimedTask

# -- Heartbeat windows ---------------------------------------------------------


def test_first_window_starts_now(fake_now) -> None:
    clock = Clock(heartbeat_interval_ms=100, pool_size=1, now=fake_now)
    window = clock.next_window()
    assert window.start == fake_now()
    assert window.until == fake_now() + timedelta(milliseconds=99)


def test_windows_are_contiguous_when_timer_is_late(fake_now) -> None:
    clock = Clock(heartbeat_interval_ms=100, pool_size=1, now=fake_now)
    first = clock.next_window()

    fake_now.advance(timedelta(milliseconds=250))
    second = clock.next_window()

    assert second.start == first.until + timedelta(microseconds=1)
    assert second.until == fake_now() + timedelta(milliseconds=99)


def test_window_never_ends_before_it_starts(fake_now) -> None:
    clock = Clock(heartbeat_interval_ms=100, pool_size=1, now=fake_now)
    first = clock.next_window()
    # Timer fires again without the clock moving.
    second = clock.next_window()
    assert second.start > first.until
    assert second.until >= second.start


def test_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        Clock(heartbeat_interval_ms=0)


# -- Lifecycle -----------------------------------------------------------------


async def test_start_and_dispose() -> None:
    clock = await start_clock(heartbeat_interval_ms=10, pool_size=1)
    try:
        assert clock.running is True
        assert clock.coordinator.running is True

        clock.dispose()
        assert clock.running is False
        # Dispose only stops the timer.
        assert clock.coordinator.running is True
    finally:
        await clock.aclose()

    assert clock.coordinator.running is False


async def test_dispose_then_aclose_shuts_scheduler_down_once() -> None:
    clock = await start_clock(heartbeat_interval_ms=10, pool_size=1)
    with patch.object(clock._scheduler, "shutdown", wraps=clock._scheduler.shutdown) as shutdown:
        clock.dispose()
        assert clock.running is False
        await clock.aclose()

    shutdown.assert_called_once_with(wait=False)
    assert clock.coordinator.running is False


async def test_dispose_when_not_started() -> None:
    clock = Clock(heartbeat_interval_ms=10, pool_size=1)
    # Should not raise
    clock.dispose()


async def test_recurring_task_fires_repeatedly(wait_until) -> None:
    runs: list[int] = []

    async def work() -> None:
        runs.append(len(runs))

    async with Clock(heartbeat_interval_ms=10, pool_size=2) as clock:
        clock.add_task(TimedTask.simple(Every(timedelta(milliseconds=100)), work))
        await wait_until(lambda: len(runs) >= 2, timeout=3)


async def test_task_slower_than_its_interval_keeps_firing(wait_until) -> None:
    runs: list[int] = []

    async def work() -> None:
        await asyncio.sleep(0.15)
        runs.append(1)

    async with Clock(heartbeat_interval_ms=10, pool_size=1) as clock:
        clock.add_task(TimedTask.simple(Every(timedelta(milliseconds=100)), work))
        await wait_until(lambda: len(runs) >= 3, timeout=3)


async def test_removed_task_stops_firing(wait_until) -> None:
    runs: list[int] = []

    async def work() -> None:
        runs.append(1)

    async with Clock(heartbeat_interval_ms=10, pool_size=1) as clock:
        task = TimedTask.simple(Every(timedelta(milliseconds=50)), work)
        clock.add_task(task)
        await wait_until(lambda: len(runs) >= 1, timeout=3)

        clock.remove_task(task.id)
        await wait_until(lambda: not clock.coordinator.running_tasks)
        await clock.coordinator.drain()
        assert clock.coordinator.pending == []
