"""TimedTask data model and the three schedule shapes."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from metronome.retry import RetryPolicy

TaskId = uuid.UUID

# Work signature: async () -> None
Work = Callable[[], Awaitable[object]]


class Weekday(IntEnum):
    """Day of week, numbered like :meth:`datetime.date.weekday`."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


# -- Schedules -----------------------------------------------------------------


@dataclass(frozen=True)
class Every:
    """Fire repeatedly, ``interval`` after the previous run."""

    interval: timedelta

    def __post_init__(self) -> None:
        if self.interval <= timedelta(0):
            msg = f"Every interval must be positive, got {self.interval}"
            raise ValueError(msg)


@dataclass(frozen=True)
class Once:
    """Fire exactly once, at ``at``."""

    at: datetime


@dataclass(frozen=True)
class Each:
    """Fire on each of ``weekdays`` at ``time_of_day``."""

    weekdays: frozenset[Weekday]
    time_of_day: time = time(0, 0)


Schedule = Every | Once | Each


# -- Task ----------------------------------------------------------------------


@dataclass
class TimedTask:
    """A unit of work tracked by the coordinator.

    Attributes:
        id: Unique identifier, generated at creation time.
        schedule: When the task fires.
        work: Zero-argument async callable run on every firing.
        retry_policy: Policy wrapped around ``work``. ``None`` retries forever.
        last_run: The due instant of the last successful run.
        next_run: The next due instant. ``None`` means retired.
    """

    id: TaskId
    schedule: Schedule
    work: Work
    retry_policy: RetryPolicy | None = None
    last_run: datetime | None = None
    next_run: datetime | None = None

    @classmethod
    def simple(cls, schedule: Schedule, work: Work) -> TimedTask:
        """A task with a fresh id and no explicit retry policy."""
        return cls(id=make_task_id(), schedule=schedule, work=work)

    @classmethod
    def new(
        cls,
        task_id: TaskId,
        schedule: Schedule,
        work: Work,
        policy: RetryPolicy,
    ) -> TimedTask:
        return cls(id=task_id, schedule=schedule, work=work, retry_policy=policy)


def make_task_id() -> TaskId:
    """Generate a new task ID."""
    return uuid.uuid4()
