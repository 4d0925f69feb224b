"""
Scheduler - keeps the schedule table provisioned for the selected jobs.
"""

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, List, Optional

from ..models import ScheduleStatus
from .config import SelectiveCronConfig
from .errors import InvalidExpression, PersistenceError
from .expression import CronExpression
from .next_run import DEFAULT_SEARCH_WINDOW_MINUTES, find_next_match
from .registry import JobRegistry
from .store import ScheduleStore
from .types import JobDefinition, ScheduleReport

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    """
    Populates and advances the schedule table.

    ``populate`` plans the next run of every selected job relative to now.
    ``advance`` keeps each job provisioned up to the horizon, chaining every
    new entry off the previous entry's scheduled time so the cadence stays
    regular when execution lags behind.
    """

    def __init__(
        self,
        store: ScheduleStore,
        registry: JobRegistry,
        config: SelectiveCronConfig,
        clock: Clock = utc_now,
        tz: tzinfo = timezone.utc,
        horizon: timedelta = timedelta(hours=1),
        search_window_minutes: int = DEFAULT_SEARCH_WINDOW_MINUTES,
    ):
        self.store = store
        self.registry = registry
        self.config = config
        self.clock = clock
        self.tz = tz
        self.horizon = horizon
        self.search_window_minutes = search_window_minutes

    def now(self) -> datetime:
        return self.clock().astimezone(self.tz)

    def resolve_expression(self, definition: JobDefinition) -> str:
        """
        Get the cron expression a job runs on.

        The explicit schedule wins, then the configuration value named by
        config_path, then the configured default expression.
        """
        if definition.schedule:
            return definition.schedule

        if definition.config_path:
            value = self.config.get_value(definition.config_path)
            if value:
                return value
            logger.warning(
                f"Job {definition.job_code} reads its schedule from "
                f"'{definition.config_path}' which has no value. Using default schedule."
            )
        else:
            logger.info(f"Job {definition.job_code} has no schedule. Using default schedule.")

        return self.config.default_cron_expression

    def next_run(self, definition: JobDefinition, after: datetime) -> Optional[datetime]:
        """
        Compute the next run of a job after the given instant.

        Returns None when the expression has no match inside the search
        window, e.g. a weekly job more than a day ahead of its next run.

        Raises:
            InvalidExpression: If the job's cron expression is invalid
        """
        expression = CronExpression.parse(self.resolve_expression(definition))
        next_run = find_next_match(
            expression, after.astimezone(self.tz), self.search_window_minutes
        )
        if next_run is None:
            logger.info(
                f"No run of job {definition.job_code} ('{expression}') within "
                f"{self.search_window_minutes} minutes of {after.isoformat()}. Not scheduled yet."
            )
        return next_run

    def _selected_jobs(self, skipped_action: str) -> Optional[List[str]]:
        if not self.config.is_enabled():
            logger.info(f"Selective Cron is disabled. {skipped_action}")
            return None

        selected_jobs = self.config.get_selected_jobs()
        if not selected_jobs:
            logger.info(f"No cron jobs selected. {skipped_action}")
            return None

        for job_code in selected_jobs:
            if not self.registry.is_registered(job_code):
                logger.warning(f"Selected job {job_code} is not registered. Ignoring it.")

        return selected_jobs

    async def _insert_once(self, job_code: str, scheduled_at: datetime) -> bool:
        if await self.store.exists_at(job_code, scheduled_at):
            logger.info(f"Job {job_code} already scheduled for {scheduled_at.isoformat()}. Skipping.")
            return False

        await self.store.insert(job_code, scheduled_at, created_at=self.now())
        logger.info(f"Job {job_code} scheduled for {scheduled_at.isoformat()}")
        return True

    async def reset(self) -> ScheduleReport:
        """Empty the schedule table and populate it again."""
        try:
            removed = await self.store.truncate()
            logger.info(f"Selective cron schedule table truncated ({removed} entries removed).")
        except PersistenceError as e:
            logger.error(f"Error truncating selective cron schedule table: {e}")

        return await self.populate()

    async def populate(self) -> ScheduleReport:
        """
        Schedule the next run of every selected job.

        Jobs already scheduled at their next run time are left alone, so
        calling this repeatedly does not create duplicates.

        Returns:
            ScheduleReport with scheduled, skipped and failed counts
        """
        report = ScheduleReport()
        selected_jobs = self._selected_jobs("Schedule not populated.")
        if selected_jobs is None:
            return report

        logger.info("Populating selective cron schedule table.")
        logger.info(f"Selected jobs: {', '.join(selected_jobs)}")

        now = self.now()
        for job_code, definition in self.registry.get_all_jobs().items():
            if job_code not in selected_jobs:
                report.skipped += 1
                continue

            try:
                next_run = self.next_run(definition, now)
                if next_run is not None and await self._insert_once(job_code, next_run):
                    report.scheduled += 1
                else:
                    report.skipped += 1
            except (InvalidExpression, PersistenceError) as e:
                report.failed += 1
                logger.error(f"Error scheduling job {job_code}: {e}")

        logger.info(
            f"Selective cron schedule populated. Jobs scheduled: {report.scheduled}, "
            f"skipped: {report.skipped}, failed: {report.failed}"
        )
        return report

    async def advance(self) -> ScheduleReport:
        """
        Schedule new entries for jobs not provisioned up to the horizon.

        Duplicates are cleaned up first. A job whose latest pending entry lies
        at or beyond the horizon is skipped. Otherwise the next run is computed
        from the job's latest entry of any status (or from now if it has none)
        and inserted when it falls before the horizon.

        Returns:
            ScheduleReport with scheduled, skipped and failed counts
        """
        report = ScheduleReport()
        selected_jobs = self._selected_jobs("No new job instances scheduled.")
        if selected_jobs is None:
            return report

        try:
            removed = await self.store.delete_duplicates()
            if removed:
                logger.info(f"Total duplicate jobs removed: {removed}")
        except PersistenceError as e:
            logger.error(f"Error cleaning up duplicate jobs: {e}")

        logger.info("Checking for jobs that need new instances.")

        now = self.now()
        horizon = now + self.horizon
        for job_code, definition in self.registry.get_all_jobs().items():
            if job_code not in selected_jobs:
                continue

            try:
                pending = await self.store.last_entry(job_code, ScheduleStatus.PENDING)
                if pending is not None and pending.scheduled_at >= horizon:
                    report.skipped += 1
                    continue

                last = await self.store.last_entry(job_code)
                if last is None:
                    next_run = self.next_run(definition, now)
                    inserted = next_run is not None and await self._insert_once(
                        job_code, next_run
                    )
                else:
                    candidate = self.next_run(definition, last.scheduled_at)
                    # Candidates already in the past are scheduled too, they are due at once
                    inserted = (
                        candidate is not None
                        and candidate < horizon
                        and await self._insert_once(job_code, candidate)
                    )

                if inserted:
                    report.scheduled += 1
                else:
                    report.skipped += 1
            except (InvalidExpression, PersistenceError) as e:
                report.failed += 1
                logger.error(f"Error scheduling job {job_code}: {e}")

        if report.scheduled > 0:
            logger.info(
                f"New job instances scheduled. Jobs scheduled: {report.scheduled}, "
                f"skipped: {report.skipped}, failed: {report.failed}"
            )
        else:
            logger.info(
                f"No new job instances needed at this time. Jobs skipped: {report.skipped}, "
                f"failed: {report.failed}"
            )
        return report
