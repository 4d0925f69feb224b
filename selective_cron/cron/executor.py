"""
Executor - claims due schedule entries and runs their jobs.
"""

import inspect
import logging

from asyncer import asyncify

from ..models import ScheduleStatus
from .config import SelectiveCronConfig
from .errors import PersistenceError
from .registry import JobRegistry
from .scheduler import Clock, Scheduler, utc_now
from .store import ScheduleStore
from .types import JobHandler, RunReport, ScheduleEntry

logger = logging.getLogger(__name__)


async def invoke_handler(handler: JobHandler) -> None:
    """
    Call a job handler with no arguments.

    Coroutine functions are awaited; plain functions run in a worker thread so
    they do not block the event loop.
    """
    if inspect.iscoroutinefunction(handler):
        await handler()
        return

    result = await asyncify(handler)()
    if inspect.isawaitable(result):
        await result


class Executor:
    """
    Runs the selected jobs whose schedule entries are due.

    Entries are processed earliest first. An entry is only executed after it
    was claimed, i.e. atomically moved from pending to running; an entry
    claimed by another runner is skipped.
    """

    def __init__(
        self,
        store: ScheduleStore,
        registry: JobRegistry,
        config: SelectiveCronConfig,
        scheduler: Scheduler,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.registry = registry
        self.config = config
        self.scheduler = scheduler
        self.clock = clock

    async def run(self) -> RunReport:
        """
        Execute every pending entry that is due.

        Returns:
            RunReport with executed, skipped and failed counts
        """
        report = RunReport()
        if not self.config.is_enabled():
            logger.info("Selective Cron is disabled. No jobs were executed.")
            return report

        logger.info("Starting selective cron execution.")

        await self.scheduler.populate()

        try:
            due_entries = await self.store.get(
                status=ScheduleStatus.PENDING, due_before=self.clock()
            )
        except PersistenceError as e:
            logger.error(f"Error loading pending jobs: {e}")
            return report

        if not due_entries:
            logger.info("No pending jobs to execute at this time.")
            return report

        logger.info(f"Found {len(due_entries)} pending jobs to execute.")

        for entry in due_entries:
            await self._process(entry, report)

        logger.info(
            f"Selective cron execution completed. Jobs executed: {report.executed}, "
            f"skipped: {report.skipped}, failed: {report.failed}"
        )
        return report

    async def _process(self, entry: ScheduleEntry, report: RunReport) -> None:
        job_code = entry.job_code

        try:
            swept = await self.store.sweep_running(
                job_code, exclude_id=entry.schedule_id, finished_at=self.clock()
            )
            if swept:
                logger.warning(f"Marked {swept} abandoned running entries of job {job_code} as failed.")
        except PersistenceError as e:
            logger.error(f"Error sweeping running entries of job {job_code}: {e}")

        try:
            claimed = await self.store.attempt_transition(
                entry.schedule_id, ScheduleStatus.PENDING, ScheduleStatus.RUNNING
            )
        except PersistenceError as e:
            report.failed += 1
            logger.error(f"Error claiming job {job_code}: {e}")
            return

        if not claimed:
            report.skipped += 1
            logger.info(
                f"Job {job_code} is already being processed by another execution. Skipping."
            )
            return

        logger.info(f"Executing job: {job_code}")
        executed_at = self.clock()
        try:
            handler = self.registry.get_handler(job_code)
            await invoke_handler(handler)
        except Exception as e:
            # JobNotFound ends up here as well
            report.failed += 1
            logger.error(f"Error executing job {job_code}: {type(e).__name__}: {e}")
            await self._finish(entry, ScheduleStatus.ERROR, messages=str(e) or type(e).__name__)
            return

        report.executed += 1
        logger.info(f"Job {job_code} executed successfully.")
        await self._finish(entry, ScheduleStatus.SUCCESS, executed_at=executed_at)

    async def _finish(self, entry: ScheduleEntry, status: ScheduleStatus, **values) -> None:
        values["finished_at"] = self.clock()
        try:
            recorded = await self.store.attempt_transition(
                entry.schedule_id, ScheduleStatus.RUNNING, status, **values
            )
        except PersistenceError as e:
            logger.error(f"Error recording {status.value} for job {entry.job_code}: {e}")
            return

        if not recorded:
            logger.warning(
                f"Entry {entry.schedule_id} of job {entry.job_code} was no longer running; "
                f"{status.value} not recorded."
            )
