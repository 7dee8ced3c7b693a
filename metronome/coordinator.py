"""Coordinator — the single owner of all scheduling state.

Every change to the pending set, the running set, the overflow queue and the
worker-slot table happens inside :meth:`Coordinator._handle`, which is only
ever called from one consumer task reading one queue.

Tie-breaking: the pending set keeps admission order, and due tasks are
assigned to slots (then queued as overflow) in that order.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from metronome.models import TaskId, TimedTask
from metronome.pool import TaskCompleted, WorkerPool
from metronome.schedule import compute_next, is_due

logger = logging.getLogger(__name__)


# -- Messages ------------------------------------------------------------------


@dataclass(frozen=True)
class AddTask:
    task: TimedTask


@dataclass(frozen=True)
class RemoveTask:
    task_id: TaskId


@dataclass(frozen=True)
class Heartbeat:
    """Select every pending task due in ``[start, until]`` (both inclusive)."""

    start: datetime
    until: datetime


Message = AddTask | RemoveTask | Heartbeat | TaskCompleted


# -- Coordinator ---------------------------------------------------------------


class Coordinator:
    """Serialised decision loop for timed tasks.

    Args:
        pool_size: Number of worker slots.
        now: Clock used when (re)computing next run times.
    """

    def __init__(self, pool_size: int, now: Callable[[], datetime]) -> None:
        self._now = now
        self._inbox: asyncio.Queue[Message] = asyncio.Queue()
        self._pool = WorkerPool(pool_size, on_complete=self.post)
        self._loop_task: asyncio.Task | None = None

        self._pending: list[TimedTask] = []
        self._running: dict[int, TimedTask] = {}
        self._overflow: deque[TimedTask] = deque()
        self._available: list[bool] = [True] * pool_size
        # Running task objects (by identity) removed mid-run; retired on completion.
        self._removed: set[int] = set()

    # -- Lifecycle -------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        """Start consuming messages. Must be called from a running loop."""
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._loop(), name="metronome-coordinator")
        logger.debug("Coordinator started with %d worker slot(s)", self._pool.size)

    async def stop(self) -> None:
        """Stop the message loop and abandon in-flight work."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None
        await self._pool.close()
        logger.debug("Coordinator stopped")

    def post(self, message: Message) -> None:
        """Queue a message for the loop. Never blocks."""
        self._inbox.put_nowait(message)

    async def drain(self) -> None:
        """Wait until every message posted so far has been handled."""
        await self._inbox.join()

    # -- State snapshots -------------------------------------------------------

    @property
    def pending(self) -> list[TimedTask]:
        return list(self._pending)

    @property
    def running_tasks(self) -> list[TimedTask]:
        return list(self._running.values())

    @property
    def overflow(self) -> list[TimedTask]:
        return list(self._overflow)

    @property
    def free_slots(self) -> list[int]:
        return [i for i, free in enumerate(self._available) if free]

    # -- Loop ------------------------------------------------------------------

    async def _loop(self) -> None:
        while True:
            message = await self._inbox.get()
            try:
                self._handle(message)
            except Exception:
                logger.exception("Coordinator failed to handle %s", type(message).__name__)
            finally:
                self._inbox.task_done()

    def _handle(self, message: Message) -> None:
        if isinstance(message, Heartbeat):
            self._on_heartbeat(message.start, message.until)
        elif isinstance(message, TaskCompleted):
            self._on_completed(message)
        elif isinstance(message, AddTask):
            self._on_add(message.task)
        elif isinstance(message, RemoveTask):
            self._on_remove(message.task_id)
        else:
            logger.warning("Ignoring unknown message: %r", message)

    # -- Handlers --------------------------------------------------------------

    def _on_add(self, task: TimedTask) -> None:
        task.next_run = compute_next(task, self._now())
        if task.next_run is None:
            logger.warning("Task %s has no next run; not scheduling it", task.id)
            return
        self._pending.append(task)
        logger.debug("Added task %s, next run %s", task.id, task.next_run.isoformat())

    def _on_remove(self, task_id: TaskId) -> None:
        before = len(self._pending) + len(self._overflow)
        self._pending = [t for t in self._pending if t.id != task_id]
        self._overflow = deque(t for t in self._overflow if t.id != task_id)
        removed = before - len(self._pending) - len(self._overflow)

        for running in self._running.values():
            if running.id == task_id:
                self._removed.add(id(running))
                removed += 1

        if removed:
            logger.debug("Removed task %s", task_id)
        else:
            logger.debug("Remove requested for unknown task %s", task_id)

    def _on_heartbeat(self, start: datetime, until: datetime) -> None:
        due = [t for t in self._pending if is_due(t, start, until)]
        if not due:
            return

        due_ids = {id(t) for t in due}
        self._pending = [t for t in self._pending if id(t) not in due_ids]

        # Anything already waiting goes first.
        candidates = deque(self._overflow)
        candidates.extend(due)
        self._overflow = deque()

        for slot in self.free_slots:
            if not candidates:
                break
            self._dispatch(slot, candidates.popleft())

        if candidates:
            logger.info(
                "%d due task(s) exceed free worker slots; postponing",
                len(candidates),
            )
        self._overflow = candidates

    def _on_completed(self, message: TaskCompleted) -> None:
        slot = message.slot
        task = self._running.get(slot)
        if task is None or task.id != message.task_id:
            logger.warning(
                "Completion for task %s on slot %d does not match a running task",
                message.task_id,
                slot,
            )
            return

        del self._running[slot]
        self._available[slot] = True
        outcome = message.outcome

        if id(task) in self._removed:
            self._removed.discard(id(task))
            logger.debug("Task %s was removed while running; not rescheduling", task.id)
        elif outcome.ok:
            logger.debug("Successfully executed task %s (%d attempt(s))", task.id, outcome.attempts)
            self._reschedule(task)
        else:
            logger.error(
                "Task with id %s failed after %d attempt(s); retiring it",
                task.id,
                outcome.attempts,
                exc_info=outcome.error,
            )
            task.next_run = None

        if self._overflow:
            self._dispatch(slot, self._overflow.popleft())

    # -- Internal --------------------------------------------------------------

    def _dispatch(self, slot: int, task: TimedTask) -> None:
        self._available[slot] = False
        self._running[slot] = task
        self._pool.assign(slot, task)

    def _reschedule(self, task: TimedTask) -> None:
        task.last_run = task.next_run
        task.next_run = compute_next(task, self._now())
        if task.next_run is None:
            logger.info("Task %s has run its course; retiring it", task.id)
            return
        self._pending.append(task)
