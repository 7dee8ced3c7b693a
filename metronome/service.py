"""MetronomeService — runs the clock with the configured tasks until stopped."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from metronome.clock import Clock
from metronome.creator import SettingsScheduleSource, TaskCreator
from metronome.retry import RetryPolicy

if TYPE_CHECKING:
    from metronome.config import Settings
    from metronome.tasks import TaskRegistry

logger = logging.getLogger(__name__)


class MetronomeService:
    """Owns one :class:`Clock` for the lifetime of the process.

    Args:
        config: Application settings.
        registry: Task definitions to schedule.
    """

    def __init__(self, config: Settings, registry: TaskRegistry) -> None:
        self._config = config
        self._registry = registry
        self._clock: Clock | None = None

    @property
    def clock(self) -> Clock | None:
        return self._clock

    def build_creator(self) -> TaskCreator:
        return TaskCreator(
            registry=self._registry,
            source=SettingsScheduleSource(self._config.schedules),
            retry_policy=RetryPolicy.wait_and_retry(self._config.retry_delays_seconds),
        )

    async def run(self, stop: asyncio.Event) -> None:
        """Start the clock, schedule every task, and wait for ``stop``."""
        logger.info("Metronome service starting")

        tasks = self.build_creator().create_tasks()
        self._clock = Clock(
            heartbeat_interval_ms=self._config.heartbeat_interval_ms,
            pool_size=self._config.worker_count,
            now=self._config.now,
            timezone=self._config.get_timezone(),
        )
        await self._clock.start()
        for task in tasks:
            self._clock.add_task(task)

        logger.info("Metronome service has been started with %d task(s)", len(tasks))

        try:
            await stop.wait()
        finally:
            logger.info("Metronome service is shutting down")
            await self._clock.aclose()
            logger.info("Metronome service is stopped")
