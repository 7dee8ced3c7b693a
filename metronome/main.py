"""Metronome entry point."""

import asyncio
import importlib
import logging
import signal

from metronome.config import settings
from metronome.service import MetronomeService
from metronome.tasks import task_registry

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)
# APScheduler logs every heartbeat run at INFO.
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def load_task_modules(modules: list[str]) -> None:
    """Import each module so its ``@task_registry.task`` decorators run."""
    for name in modules:
        importlib.import_module(name)
        logger.info("Loaded task module: %s", name)


async def serve() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    service = MetronomeService(settings, task_registry)
    await service.run(stop)


def main() -> None:
    """Load task modules and run the service until interrupted."""
    load_task_modules(settings.task_modules)
    if not task_registry.names:
        logger.warning("No tasks registered; set TASK_MODULES to schedule something")
    asyncio.run(serve())


if __name__ == "__main__":
    main()
