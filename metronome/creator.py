"""Task creator — turns registered definitions into scheduled TimedTasks."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, time
from typing import Protocol

from metronome.config import TaskScheduleConfig
from metronome.models import Each, TimedTask, Weekday, make_task_id
from metronome.retry import RetryPolicy
from metronome.tasks import TaskRegistry

logger = logging.getLogger(__name__)

_DAY_ABBREVIATIONS = {
    "MON": Weekday.MONDAY,
    "TUE": Weekday.TUESDAY,
    "WED": Weekday.WEDNESDAY,
    "THU": Weekday.THURSDAY,
    "FRI": Weekday.FRIDAY,
    "SAT": Weekday.SATURDAY,
    "SUN": Weekday.SUNDAY,
}

_TIME_FORMAT = "%H:%M:%S"


def parse_weekday(raw: str) -> Weekday | None:
    """Parse a three-letter day abbreviation (``MON``..``SUN``, any case)."""
    return _DAY_ABBREVIATIONS.get(raw.strip().upper())


def parse_time_of_day(raw: str) -> time | None:
    """Parse an ``HH:MM:SS`` string."""
    try:
        return datetime.strptime(raw.strip(), _TIME_FORMAT).time()
    except ValueError:
        return None


class ScheduleSource(Protocol):
    """Where the weekly schedule of a named task comes from."""

    def get_days(self, name: str) -> list[str] | None: ...

    def get_time(self, name: str) -> str | None: ...


class SettingsScheduleSource:
    """Schedule source backed by the ``schedules`` setting."""

    def __init__(self, schedules: Mapping[str, TaskScheduleConfig]) -> None:
        self._schedules = schedules

    def get_days(self, name: str) -> list[str] | None:
        entry = self._schedules.get(name)
        return list(entry.days) if entry else None

    def get_time(self, name: str) -> str | None:
        entry = self._schedules.get(name)
        return entry.time if entry else None


class TaskCreator:
    """Builds one ``Each``-scheduled TimedTask per registered definition.

    Malformed schedule values never fail task creation: unknown weekdays are
    dropped and an unreadable time falls back to midnight.

    Args:
        registry: Task definitions to schedule.
        source: Weekly schedule per task name.
        retry_policy: Policy attached to every created task.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        source: ScheduleSource,
        retry_policy: RetryPolicy,
    ) -> None:
        self._registry = registry
        self._source = source
        self._retry_policy = retry_policy

    def create_tasks(self) -> list[TimedTask]:
        logger.info("Setting up timed tasks")
        definitions = self._registry.definitions
        logger.debug("Got %d task(s) to queue", len(definitions))

        tasks = []
        for definition in definitions:
            name = definition.name
            days = self._read_days(name)
            time_of_day = self._read_time(name)
            logger.info(
                "Schedule for %s-task is at %s on each %s",
                name,
                time_of_day.isoformat(),
                " and ".join(d.name.title() for d in sorted(days)) or "(no day)",
            )
            tasks.append(
                TimedTask.new(
                    make_task_id(),
                    Each(weekdays=days, time_of_day=time_of_day),
                    definition.run,
                    self._retry_policy,
                )
            )
        return tasks

    def _read_days(self, name: str) -> frozenset[Weekday]:
        raw_days = self._source.get_days(name) or []
        days = set()
        for raw in raw_days:
            day = parse_weekday(raw)
            if day is None:
                logger.warning("Ignoring unknown weekday %r for task %s", raw, name)
                continue
            days.add(day)
        return frozenset(days)

    def _read_time(self, name: str) -> time:
        raw = self._source.get_time(name)
        if raw is None:
            return time(0, 0)
        parsed = parse_time_of_day(raw)
        if parsed is None:
            logger.warning("Unreadable time %r for task %s; using midnight", raw, name)
            return time(0, 0)
        return parsed
