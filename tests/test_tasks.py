"""Tests for the task registry."""

from metronome.tasks import TaskRegistry

# -- Registration ------------------------------------------------------------


def test_register_task() -> None:
    reg = TaskRegistry()

    @reg.task("cleanup")
    async def cleanup() -> None:
        pass

    assert "cleanup" in reg.names
    definition = reg.get("cleanup")
    assert definition is not None
    assert definition.run is cleanup


def test_unknown_name_returns_none() -> None:
    reg = TaskRegistry()
    assert reg.get("nope") is None


def test_definitions_keep_registration_order() -> None:
    reg = TaskRegistry()

    @reg.task("b")
    async def task_b() -> None:
        pass

    @reg.task("a")
    async def task_a() -> None:
        pass

    assert [d.name for d in reg.definitions] == ["b", "a"]


def test_register_replaces_same_name() -> None:
    reg = TaskRegistry()

    async def first() -> None:
        pass

    async def second() -> None:
        pass

    reg.register("job", first)
    reg.register("job", second)

    assert reg.names == ["job"]
    assert reg.get("job").run is second


def test_names_empty_initially() -> None:
    reg = TaskRegistry()
    assert reg.names == []
