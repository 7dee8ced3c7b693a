"""Schedule evaluation."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from metronome.models import Each, Every, Once, TimedTask

logger = logging.getLogger(__name__)

_LOOKAHEAD_DAYS = 7


def compute_next(task: TimedTask, now: datetime) -> datetime | None:
    """Return the next due instant for ``task``, or ``None`` if it is done.

    ``Once`` tasks return their instant even when it is already in the past;
    whether they fire is decided by heartbeat window membership.
    """
    schedule = task.schedule

    if isinstance(schedule, Every):
        return _next_interval(schedule, now, task.last_run)

    if isinstance(schedule, Once):
        if task.last_run is not None:
            return None
        return schedule.at

    if isinstance(schedule, Each):
        return _next_weekly(schedule, now, task.last_run)

    msg = f"Unknown schedule type: {type(schedule).__name__}"
    raise TypeError(msg)


def _next_interval(schedule: Every, now: datetime, last_run: datetime | None) -> datetime:
    if last_run is None:
        return now + schedule.interval

    next_run = last_run + schedule.interval
    if next_run < now:
        # Skip the occurrences missed while the run was late, keeping the phase.
        missed = -((next_run - now) // schedule.interval)
        next_run += missed * schedule.interval
        logger.debug("Every-task ran late; skipped %d occurrence(s)", missed)
    return next_run


def _next_weekly(schedule: Each, now: datetime, last_run: datetime | None) -> datetime | None:
    candidates = []
    for offset in range(_LOOKAHEAD_DAYS + 1):
        day = (now + timedelta(days=offset)).date()
        candidate = datetime.combine(day, schedule.time_of_day, tzinfo=now.tzinfo)
        if candidate.weekday() not in schedule.weekdays or candidate < now:
            continue
        # The occurrence that just ran is not due again.
        if last_run is not None and candidate <= last_run:
            continue
        candidates.append(candidate)

    if not candidates:
        logger.warning("Each-schedule has no matching weekday: %s", sorted(schedule.weekdays))
        return None

    next_run = min(candidates)
    logger.debug("Updating next run of Each-task: %s", next_run.isoformat())
    return next_run


def is_due(task: TimedTask, start: datetime, until: datetime) -> bool:
    """True when the task's next run falls inside ``[start, until]``."""
    if task.next_run is None:
        return False
    return start <= task.next_run <= until
