"""
Wiring of store, scheduler and executor into one service.
"""

import importlib
import logging
from datetime import timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import Settings
from .cron.config import ConfigPaths, SelectiveCronConfig
from .cron.executor import Executor
from .cron.registry import JobRegistry, job_registry
from .cron.scheduler import Clock, Scheduler, utc_now
from .cron.store import ScheduleStore
from .cron.types import RunReport, ScheduleReport

logger = logging.getLogger(__name__)

WATCHED_PATHS = frozenset({ConfigPaths.ENABLED.value, ConfigPaths.SELECTED_JOBS.value})


class SelectiveCronService:
    """
    Entry points of the selective cron engine.

    ``reset`` is meant to run when the configuration changes, ``advance`` and
    ``run`` on a periodic tick. All three can be called repeatedly and from
    several processes sharing one database.
    """

    def __init__(
        self,
        store: ScheduleStore,
        registry: JobRegistry,
        config: SelectiveCronConfig,
        clock: Clock = utc_now,
        tz=None,
        horizon: timedelta = timedelta(hours=1),
        search_window_minutes: int = 1440,
    ):
        self.store = store
        self.registry = registry
        self.config = config
        self.scheduler = Scheduler(
            store,
            registry,
            config,
            clock=clock,
            tz=tz or ZoneInfo("UTC"),
            horizon=horizon,
            search_window_minutes=search_window_minutes,
        )
        self.executor = Executor(store, registry, config, self.scheduler, clock=clock)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: Optional[JobRegistry] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        clock: Clock = utc_now,
    ) -> "SelectiveCronService":
        cron_settings = settings.selective_cron
        return cls(
            ScheduleStore(session_factory),
            registry if registry is not None else job_registry,
            SelectiveCronConfig.from_settings(settings),
            clock=clock,
            tz=ZoneInfo(cron_settings.timezone),
            horizon=timedelta(minutes=cron_settings.horizon_minutes),
            search_window_minutes=cron_settings.search_window_minutes,
        )

    async def reset(self) -> ScheduleReport:
        return await self.scheduler.reset()

    async def populate(self) -> ScheduleReport:
        return await self.scheduler.populate()

    async def advance(self) -> ScheduleReport:
        return await self.scheduler.advance()

    async def run(self) -> RunReport:
        return await self.executor.run()

    async def on_config_changed(self, changed_paths: Iterable[str]) -> bool:
        """
        React to a configuration change.

        The schedule is rebuilt only when the enabled flag or the job
        selection changed.

        Args:
            changed_paths: Configuration paths that changed

        Returns:
            True if the schedule was reset
        """
        if WATCHED_PATHS.isdisjoint(changed_paths):
            return False

        logger.info("Selective cron configuration changed. Updating schedule.")
        try:
            await self.reset()
        except Exception as e:
            logger.error(f"Error updating selective cron schedule: {e}")
            return False

        logger.info("Selective cron schedule updated successfully.")
        return True


def import_job_modules(modules: Iterable[str]) -> None:
    """Import host modules so the jobs they define register themselves."""
    for module in modules:
        importlib.import_module(module)
        logger.info(f"Loaded job module {module}")
