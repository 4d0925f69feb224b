"""
Scheduling engine for selective cron.

Cron expression matching, next run calculation, the schedule store, and the
scheduler and executor built on top of them.
"""

from .executor import Executor
from .expression import CronExpression
from .next_run import compute_next_run, find_next_match
from .registry import JobRegistry, job_registry
from .scheduler import Scheduler
from .store import ScheduleStore

__all__ = [
    "CronExpression",
    "compute_next_run",
    "find_next_match",
    "ScheduleStore",
    "JobRegistry",
    "job_registry",
    "Scheduler",
    "Executor",
]
