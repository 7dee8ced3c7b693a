"""Fixed set of execution slots running the retry executor."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass

from metronome.models import TaskId, TimedTask
from metronome.retry import TaskOutcome, execute_with_retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskCompleted:
    """Completion report from a worker slot."""

    slot: int
    task_id: TaskId
    outcome: TaskOutcome


# Completion callback signature: (TaskCompleted) -> None
CompletionCallback = Callable[[TaskCompleted], None]


def default_pool_size() -> int:
    """Number of hardware execution contexts available to the process."""
    return os.cpu_count() or 1


class WorkerPool:
    """Runs assigned tasks concurrently, one per slot.

    The pool keeps no record of which slot is busy; that bookkeeping lives in
    the coordinator. Each assignment produces exactly one completion report
    unless the run is cancelled.

    Args:
        size: Number of slots.
        on_complete: Called with a :class:`TaskCompleted` after each run.
    """

    def __init__(self, size: int, on_complete: CompletionCallback) -> None:
        if size < 1:
            msg = f"Worker pool needs at least one slot, got {size}"
            raise ValueError(msg)
        self._size = size
        self._on_complete = on_complete
        self._inflight: set[asyncio.Task] = set()

    @property
    def size(self) -> int:
        return self._size

    @property
    def inflight(self) -> int:
        """Number of runs that have not finished yet."""
        return len(self._inflight)

    def assign(self, slot: int, task: TimedTask) -> None:
        """Start running ``task`` in ``slot``."""
        if not 0 <= slot < self._size:
            msg = f"Slot {slot} out of range for pool of {self._size}"
            raise IndexError(msg)
        logger.debug("Slot %d starting task %s", slot, task.id)
        run = asyncio.create_task(self._run(slot, task), name=f"metronome-slot-{slot}")
        self._inflight.add(run)
        run.add_done_callback(self._inflight.discard)

    async def _run(self, slot: int, task: TimedTask) -> None:
        outcome = await execute_with_retry(task.work, task.retry_policy)
        self._on_complete(TaskCompleted(slot=slot, task_id=task.id, outcome=outcome))

    async def close(self) -> None:
        """Abandon every in-flight run."""
        runs = list(self._inflight)
        for run in runs:
            run.cancel()
        if runs:
            await asyncio.gather(*runs, return_exceptions=True)
            logger.info("Abandoned %d in-flight task run(s)", len(runs))
