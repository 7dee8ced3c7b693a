"""Application settings loaded from environment variables."""

import os
import zoneinfo
from datetime import datetime, tzinfo

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from tzlocal import get_localzone


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class TaskScheduleConfig(BaseModel):
    """Raw weekly schedule for one named task.

    Values stay strings here; parsing (and degrading on bad input) happens
    when tasks are created.
    """

    days: list[str] = Field(default_factory=list)
    time: str | None = None


class Settings(BaseSettings):
    """Metronome configuration. All values come from environment variables."""

    # Clock
    heartbeat_interval_ms: int = Field(default=100, gt=0)
    worker_count: int | None = Field(default=None, ge=1)
    scheduler_timezone: str = Field(default="")

    # Tasks
    retry_delays_seconds: list[float] = Field(
        default_factory=lambda: [5, 10, 30, 600, 600, 600, 1800, 3600]
    )
    schedules: dict[str, TaskScheduleConfig] = Field(default_factory=dict)
    task_modules: list[str] = Field(default_factory=list)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_timezone(self) -> tzinfo:
        """Resolve SCHEDULER_TIMEZONE, falling back to the system zone.

        The fallback is a real zone (not a fixed offset), so wall-clock
        schedules stay correct across DST changes.
        """
        if not self.scheduler_timezone.strip():
            return get_localzone()
        return zoneinfo.ZoneInfo(self.scheduler_timezone.strip())

    def now(self) -> datetime:
        """Current time in the configured timezone, always tz-aware."""
        return datetime.now(self.get_timezone())


settings = Settings()
