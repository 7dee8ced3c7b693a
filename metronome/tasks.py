"""Task registry — central catalog of named task definitions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from metronome.models import Work

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskDefinition:
    """A named piece of work. The scheduler only ever looks at these two fields."""

    name: str
    run: Work


class TaskRegistry:
    """Registry for named task definitions.

    Usage::

        registry = TaskRegistry()

        @registry.task("cleanup")
        async def cleanup() -> None:
            ...
    """

    def __init__(self) -> None:
        self._definitions: dict[str, TaskDefinition] = {}

    def task(self, name: str) -> Callable[[Work], Work]:
        """Decorator to register an async function as a task."""

        def decorator(fn: Work) -> Work:
            self.register(name, fn)
            return fn

        return decorator

    def register(self, name: str, run: Work) -> TaskDefinition:
        if name in self._definitions:
            logger.warning("Replacing existing task definition: %s", name)
        definition = TaskDefinition(name=name, run=run)
        self._definitions[name] = definition
        logger.info("Registered task: %s", name)
        return definition

    def get(self, name: str) -> TaskDefinition | None:
        """Look up a definition by name."""
        return self._definitions.get(name)

    @property
    def names(self) -> list[str]:
        """All registered task names."""
        return list(self._definitions)

    @property
    def definitions(self) -> list[TaskDefinition]:
        return list(self._definitions.values())


task_registry = TaskRegistry()
