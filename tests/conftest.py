"""Shared test fixtures."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest


class FakeNow:
    """Controllable clock function."""

    def __init__(self, start: datetime) -> None:
        self.value = start

    def __call__(self) -> datetime:
        return self.value

    def advance(self, delta: timedelta) -> None:
        self.value += delta


@pytest.fixture
def fake_now() -> FakeNow:
    # A Monday morning.
    return FakeNow(datetime(2025, 6, 2, 9, 0, tzinfo=UTC))


@pytest.fixture
def wait_until():
    """Poll ``predicate`` until it holds, failing the test after ``timeout``."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        async with asyncio.timeout(timeout):
            while not predicate():
                await asyncio.sleep(0.001)

    return _wait
