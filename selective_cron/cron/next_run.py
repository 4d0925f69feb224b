"""
Next run time calculation for cron expressions.

The search walks forward one minute at a time from the reference instant and
tests every candidate against the expression. A day has 1440 minutes, so the
default window covers the next 24 hours.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from .expression import CronExpression

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_WINDOW_MINUTES = 1440


def find_next_match(
    expression: CronExpression,
    from_instant: datetime,
    window_minutes: int = DEFAULT_SEARCH_WINDOW_MINUTES,
) -> Optional[datetime]:
    """
    Find the first instant strictly after ``from_instant`` matching the expression.

    Args:
        expression: Parsed cron expression
        from_instant: Reference instant; the search starts at the next whole minute
        window_minutes: Number of minutes to inspect

    Returns:
        The matching instant, or None if nothing matches inside the window
    """
    candidate = from_instant.replace(second=0, microsecond=0) + timedelta(minutes=1)
    for _ in range(window_minutes):
        if expression.matches(candidate):
            return candidate
        candidate += timedelta(minutes=1)
    return None


def compute_next_run(
    expression: CronExpression,
    from_instant: datetime,
    window_minutes: int = DEFAULT_SEARCH_WINDOW_MINUTES,
) -> datetime:
    """
    Compute the next run time of a job.

    When no match exists inside the search window, ``from_instant + 24h`` is
    returned instead and a warning is logged. That value is a fallback, not a
    real match of the expression.

    Args:
        expression: Parsed cron expression
        from_instant: Reference instant
        window_minutes: Number of minutes to inspect

    Returns:
        Next run time
    """
    next_run = find_next_match(expression, from_instant, window_minutes)
    if next_run is not None:
        return next_run

    logger.warning(
        f"Could not find a matching time for cron expression '{expression}' "
        f"within {window_minutes} minutes of {from_instant.isoformat()}"
    )
    return from_instant + timedelta(hours=24)
