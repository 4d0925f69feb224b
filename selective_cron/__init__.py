"""
Selective cron: run a chosen subset of registered periodic jobs on their own schedule.

Jobs register into a JobRegistry; the service keeps a persisted schedule table
provisioned for the selected jobs and executes the entries that are due.
"""

from .cron.config import ConfigPaths, SelectiveCronConfig
from .cron.errors import (
    InvalidExpression,
    JobNotFound,
    PersistenceError,
    SelectiveCronError,
)
from .cron.registry import JobRegistry, job_registry
from .cron.types import JobDefinition, RunReport, ScheduleEntry, ScheduleReport
from .models import ScheduleStatus
from .service import SelectiveCronService

__all__ = [
    "ConfigPaths",
    "SelectiveCronConfig",
    "SelectiveCronError",
    "InvalidExpression",
    "JobNotFound",
    "PersistenceError",
    "JobRegistry",
    "job_registry",
    "JobDefinition",
    "ScheduleEntry",
    "ScheduleReport",
    "RunReport",
    "ScheduleStatus",
    "SelectiveCronService",
]
