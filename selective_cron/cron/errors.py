"""
Exceptions raised by the selective cron engine.
"""


class SelectiveCronError(Exception):
    """Base class for all selective cron errors."""


class InvalidExpression(SelectiveCronError, ValueError):
    """Raised when a cron expression cannot be parsed."""

    def __init__(self, message: str, expression: str = ""):
        self.expression = expression
        super().__init__(message)


class PersistenceError(SelectiveCronError):
    """Raised when the schedule table cannot be read or written."""


class JobNotFound(SelectiveCronError, LookupError):
    """Raised when a job code is not present in the job registry."""

    def __init__(self, job_code: str):
        self.job_code = job_code
        super().__init__(f"Job configuration not found for {job_code}")
