"""Recurring-task scheduler: schedules, retries, worker pool and coordinator."""

from metronome.clock import Clock, start_clock
from metronome.coordinator import Coordinator
from metronome.models import Each, Every, Once, TimedTask, Weekday
from metronome.retry import RetryPolicy, TaskOutcome, execute_with_retry
from metronome.schedule import compute_next

__all__ = [
    "Clock",
    "Coordinator",
    "Each",
    "Every",
    "Once",
    "RetryPolicy",
    "TaskOutcome",
    "TimedTask",
    "Weekday",
    "compute_next",
    "execute_with_retry",
    "start_clock",
]
