"""
Configuration facade read by the scheduler and executor.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

from ..config import Settings, split_job_codes


class ConfigPaths(str, Enum):
    ENABLED = "system/selective_cron/enabled"
    SELECTED_JOBS = "system/selective_cron/selected_jobs"


class SelectiveCronConfig:
    """
    Read-only view of the selective cron configuration.

    Args:
        enabled: Whether selective cron is enabled at all
        selected_jobs: Selected job codes, as a list or a comma separated string
        values: Named configuration values, looked up by a job's config_path
        default_cron_expression: Expression for jobs that define none
    """

    def __init__(
        self,
        enabled: bool = False,
        selected_jobs: Union[Iterable[str], str, None] = None,
        values: Optional[Dict[str, str]] = None,
        default_cron_expression: str = "* * * * *",
    ):
        self._enabled = enabled
        # Keep the configured order, drop repeats
        self._selected_jobs = list(dict.fromkeys(split_job_codes(selected_jobs)))
        self._values = dict(values or {})
        self.default_cron_expression = default_cron_expression

    @classmethod
    def from_settings(cls, settings: Settings) -> "SelectiveCronConfig":
        return cls(
            enabled=settings.selective_cron.enabled,
            selected_jobs=settings.selective_cron.selected_jobs,
            values=settings.values,
            default_cron_expression=settings.selective_cron.default_cron_expression,
        )

    def is_enabled(self) -> bool:
        return self._enabled

    def get_selected_jobs(self) -> List[str]:
        return list(self._selected_jobs)

    def get_value(self, path: str) -> Optional[str]:
        return self._values.get(path)
