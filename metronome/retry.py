"""Retry executor — runs a task's work under a retry policy."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from metronome.models import Work

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How often, and how patiently, to retry failing work.

    Args:
        delays: Seconds to wait before each retry, in order. Once the
            sequence is used up the last delay repeats. Empty means no wait.
        max_attempts: Total attempts including the first. ``None`` retries
            without limit.
        retry_on: Exception types that are worth retrying. Anything else
            fails the run on the spot.
    """

    delays: tuple[float, ...] = ()
    max_attempts: int | None = None
    retry_on: tuple[type[Exception], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_attempts is not None and self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)
        if any(d < 0 for d in self.delays):
            msg = f"Retry delays must not be negative: {self.delays}"
            raise ValueError(msg)

    @classmethod
    def wait_and_retry(
        cls,
        delays: Sequence[float],
        retry_on: tuple[type[Exception], ...] = (Exception,),
    ) -> RetryPolicy:
        """One retry per delay, so ``len(delays) + 1`` attempts in total."""
        return cls(delays=tuple(delays), max_attempts=len(delays) + 1, retry_on=retry_on)

    @classmethod
    def forever(cls) -> RetryPolicy:
        """Retry until the work succeeds, without waiting in between."""
        return cls()

    def delay_before(self, retry: int) -> float:
        """Seconds to wait before the ``retry``-th retry (0-based)."""
        if not self.delays:
            return 0.0
        return self.delays[min(retry, len(self.delays) - 1)]

    def allows(self, attempts: int, error: Exception) -> bool:
        """Whether another attempt follows ``attempts`` failed ones."""
        if not isinstance(error, self.retry_on):
            return False
        return self.max_attempts is None or attempts < self.max_attempts


# Used when a task carries no policy. Note: this retries forever, it does
# not mean "run once".
DEFAULT_POLICY = RetryPolicy.forever()


@dataclass(frozen=True)
class TaskOutcome:
    """Final result of one task run after the policy is exhausted."""

    attempts: int
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def execute_with_retry(work: Work, policy: RetryPolicy | None = None) -> TaskOutcome:
    """Run ``work`` until it succeeds or ``policy`` gives up.

    A missing policy falls back to :data:`DEFAULT_POLICY`, which retries
    indefinitely with no backoff. Cancellation is propagated, never captured.

    Returns:
        The outcome, carrying the last exception on terminal failure.
    """
    policy = policy or DEFAULT_POLICY
    attempts = 0

    while True:
        attempts += 1
        try:
            await work()
        except Exception as e:
            if not policy.allows(attempts, e):
                return TaskOutcome(attempts=attempts, error=e)

            delay = policy.delay_before(attempts - 1)
            logger.warning(
                "Attempt %d failed (%s: %s), retrying in %.1fs",
                attempts,
                type(e).__name__,
                e,
                delay,
            )
            # Yields to the event loop even when delay is 0.
            await asyncio.sleep(delay)
        else:
            return TaskOutcome(attempts=attempts)
