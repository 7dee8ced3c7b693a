"""Clock — heartbeat timer wired to the coordinator."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from tzlocal import get_localzone

from metronome.coordinator import AddTask, Coordinator, Heartbeat, RemoveTask
from metronome.models import TaskId, TimedTask
from metronome.pool import default_pool_size

logger = logging.getLogger(__name__)

_HEARTBEAT_JOB_ID = "metronome-heartbeat"
_RESOLUTION = timedelta(microseconds=1)


def _local_now() -> datetime:
    return datetime.now(get_localzone())


class Clock:
    """Posts a heartbeat window to the coordinator every interval.

    Windows are contiguous: each one starts just after the previous one
    ended, so a late timer tick widens the next window instead of skipping
    the instants in between.

    Args:
        heartbeat_interval_ms: Milliseconds between heartbeats.
        pool_size: Worker slots (default: CPU count).
        now: Clock function returning tz-aware datetimes.
        timezone: Timezone for the underlying APScheduler instance.
    """

    def __init__(
        self,
        heartbeat_interval_ms: int = 100,
        pool_size: int | None = None,
        now: Callable[[], datetime] | None = None,
        timezone: tzinfo | None = None,
    ) -> None:
        if heartbeat_interval_ms <= 0:
            msg = f"Heartbeat interval must be positive, got {heartbeat_interval_ms}ms"
            raise ValueError(msg)
        self._interval = timedelta(milliseconds=heartbeat_interval_ms)
        self._now = now or _local_now
        self._coordinator = Coordinator(pool_size or default_pool_size(), now=self._now)
        scheduler_kwargs = {"timezone": timezone} if timezone is not None else {}
        self._scheduler = AsyncIOScheduler(**scheduler_kwargs)
        self._last_until: datetime | None = None
        self._running = False

    @property
    def coordinator(self) -> Coordinator:
        return self._coordinator

    @property
    def running(self) -> bool:
        return self._running

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Start the coordinator loop and the heartbeat timer."""
        if self._running:
            return
        self._coordinator.start()
        self._scheduler.add_job(
            self._on_timer,
            trigger=IntervalTrigger(seconds=self._interval.total_seconds()),
            id=_HEARTBEAT_JOB_ID,
            name="heartbeat",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
        )
        self._scheduler.start()
        self._running = True
        logger.info("Clock started (heartbeat=%dms)", self._interval // timedelta(milliseconds=1))

    def dispose(self) -> None:
        """Stop the heartbeat timer. In-flight runs and queues are left alone."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Clock stopped")

    async def aclose(self) -> None:
        """Dispose, then stop the coordinator and abandon in-flight runs."""
        self.dispose()
        await self._coordinator.stop()

    async def __aenter__(self) -> Clock:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- Task management -------------------------------------------------------

    def add_task(self, task: TimedTask) -> None:
        self._coordinator.post(AddTask(task))

    def remove_task(self, task_id: TaskId) -> None:
        self._coordinator.post(RemoveTask(task_id))

    # -- Internal --------------------------------------------------------------

    def next_window(self) -> Heartbeat:
        """Compute the next heartbeat window and remember where it ends."""
        now = self._now()
        until = now + self._interval - timedelta(milliseconds=1)
        start = now if self._last_until is None else self._last_until + _RESOLUTION
        until = max(until, start)
        self._last_until = until
        return Heartbeat(start=start, until=until)

    async def _on_timer(self) -> None:
        self._coordinator.post(self.next_window())


async def start_clock(
    heartbeat_interval_ms: int = 100,
    pool_size: int | None = None,
    now: Callable[[], datetime] | None = None,
    timezone: tzinfo | None = None,
) -> Clock:
    """Create and start a :class:`Clock`."""
    clock = Clock(
        heartbeat_interval_ms=heartbeat_interval_ms,
        pool_size=pool_size,
        now=now,
        timezone=timezone,
    )
    await clock.start()
    return clock
