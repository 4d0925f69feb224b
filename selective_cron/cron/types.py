"""
Type definitions for the selective cron engine.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union

from ..models import ScheduleStatus

# Jobs are invoked with no arguments; coroutine functions are awaited
JobHandler = Callable[[], Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class JobDefinition:
    """
    A job the host application makes available for selective execution.

    The cron expression comes from ``schedule`` when set, otherwise from the
    configuration value named by ``config_path``.
    """

    job_code: str
    handler: JobHandler
    schedule: Optional[str] = None
    config_path: Optional[str] = None
    group: str = "default"
    description: str = ""


@dataclass(frozen=True)
class ScheduleEntry:
    """
    Frozen dataclass representing one row of the schedule table.

    This is what the store returns instead of ORM rows.
    """

    schedule_id: int
    job_code: str
    status: ScheduleStatus
    scheduled_at: datetime
    created_at: datetime
    executed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    messages: Optional[str] = None


@dataclass
class ScheduleReport:
    """Outcome of a populate or advance pass."""

    scheduled: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass
class RunReport:
    """Outcome of one executor run."""

    executed: int = 0
    skipped: int = 0
    failed: int = 0
