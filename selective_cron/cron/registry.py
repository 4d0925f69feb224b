"""
Job registry for the jobs that can be selected for execution.
"""

import logging
from typing import Dict, List, Optional

from .errors import JobNotFound
from .types import JobDefinition, JobHandler

logger = logging.getLogger(__name__)


class JobRegistry:
    """
    Registry of job definitions keyed by job code.

    The registry keeps registration order; ``job_codes`` returns the codes
    sorted for display.
    """

    def __init__(self):
        # job_code -> JobDefinition
        self._jobs: Dict[str, JobDefinition] = {}

    def add(self, definition: JobDefinition) -> JobDefinition:
        """
        Add a job definition, replacing any previous one with the same code.

        Args:
            definition: The job definition

        Returns:
            The same definition
        """
        if definition.job_code in self._jobs:
            logger.warning(f"Job {definition.job_code} is already registered, overriding")
        self._jobs[definition.job_code] = definition
        return definition

    def register(
        self,
        job_code: Optional[str] = None,
        schedule: Optional[str] = None,
        config_path: Optional[str] = None,
        group: str = "default",
        description: str = "",
    ):
        """
        Decorator to register a job handler.

        Args:
            job_code: Job code (defaults to function name)
            schedule: Explicit cron expression
            config_path: Name of the configuration value holding the expression
            group: Job group, used for listings only
            description: Human-readable description of the job

        Returns:
            Decorated handler, unchanged

        Example:
            ```python
            @job_registry.register(job_code="sitemap_generate", schedule="0 3 * * *")
            async def generate_sitemap():
                ...
            ```
        """

        def decorator(func: JobHandler) -> JobHandler:
            self.add(
                JobDefinition(
                    job_code=job_code or func.__name__,
                    handler=func,
                    schedule=schedule,
                    config_path=config_path,
                    group=group,
                    description=description,
                )
            )
            return func

        return decorator

    def get(self, job_code: str) -> Optional[JobDefinition]:
        return self._jobs.get(job_code)

    def get_handler(self, job_code: str) -> JobHandler:
        """
        Resolve the handler of a job.

        Raises:
            JobNotFound: If no job with this code is registered
        """
        definition = self._jobs.get(job_code)
        if definition is None:
            raise JobNotFound(job_code)
        return definition.handler

    def get_all_jobs(self) -> Dict[str, JobDefinition]:
        """Get all registered jobs in registration order."""
        return self._jobs.copy()

    def job_codes(self) -> List[str]:
        """Get all registered job codes sorted alphabetically."""
        return sorted(self._jobs)

    def is_registered(self, job_code: str) -> bool:
        return job_code in self._jobs


# Global registry host modules register their jobs into
job_registry = JobRegistry()
