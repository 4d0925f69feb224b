"""
Cron expression parsing and matching.

Expressions have exactly five whitespace separated fields:
minute hour day-of-month month day-of-week. Every field must match for an
instant to match, including the day-of-month/day-of-week pair.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Tuple

from .errors import InvalidExpression

MONTH_NAMES: Dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

WEEKDAY_NAMES: Dict[str, int] = {
    "sun": 0,
    "mon": 1,
    "tue": 2,
    "wed": 3,
    "thu": 4,
    "fri": 5,
    "sat": 6,
}


@dataclass(frozen=True)
class CronField:
    """Name and inclusive bounds of one cron field."""

    name: str
    min_value: int
    max_value: int


MINUTE = CronField("minute", 0, 59)
HOUR = CronField("hour", 0, 23)
DAY_OF_MONTH = CronField("day_of_month", 1, 31)
MONTH = CronField("month", 1, 12)
DAY_OF_WEEK = CronField("day_of_week", 0, 6)

FIELDS: Tuple[CronField, ...] = (MINUTE, HOUR, DAY_OF_MONTH, MONTH, DAY_OF_WEEK)


def convert_value(value: str, default: int) -> int:
    """
    Convert a cron value to an integer, resolving month and weekday names.

    Names match by prefix, case-insensitively ("January" resolves to 1).
    Anything that resolves to neither falls back to ``default``.

    Args:
        value: Raw value taken from a cron field
        default: Value returned when the name cannot be resolved

    Returns:
        The integer value
    """
    value = value.strip()
    try:
        return int(value)
    except ValueError:
        pass

    value = value.lower()
    for name, number in MONTH_NAMES.items():
        if value.startswith(name):
            return number
    for name, number in WEEKDAY_NAMES.items():
        if value.startswith(name):
            return number
    return default


def match_part(part: str, value: int, field: CronField) -> bool:
    """
    Check whether a single cron field pattern matches a value.

    Supports "*", lists ("1,3,5"), steps ("*/15", "1-30/5"),
    ranges ("1-5") and plain values, evaluated in that order.
    """
    if part == "*":
        return True

    if "," in part:
        return any(match_part(item, value, field) for item in part.split(","))

    if "/" in part:
        base, step_text = part.split("/", 1)
        step = int(step_text)
        if base == "*":
            return (value - field.min_value) % step == 0
        if "-" in base:
            start_text, end_text = base.split("-", 1)
            start = convert_value(start_text, field.min_value)
            end = convert_value(end_text, field.max_value)
            return start <= value <= end and (value - start) % step == 0
        return False

    if "-" in part:
        start_text, end_text = part.split("-", 1)
        start = convert_value(start_text, field.min_value)
        end = convert_value(end_text, field.max_value)
        return start <= value <= end

    return value == convert_value(part, field.min_value)


def _validate_steps(part: str, expression: str) -> None:
    for item in part.split(","):
        if "/" not in item:
            continue
        step_text = item.split("/", 1)[1]
        if not step_text.isdigit() or int(step_text) == 0:
            raise InvalidExpression(
                f"Invalid step '{item}' in cron expression: {expression}",
                expression=expression,
            )


@dataclass(frozen=True)
class CronExpression:
    """
    A parsed five-field cron expression.

    Instances are immutable; parse once and call ``matches`` as often as needed.
    """

    minute: str
    hour: str
    day_of_month: str
    month: str
    day_of_week: str
    expression: str = ""

    @classmethod
    def parse(cls, expression: str) -> "CronExpression":
        """
        Parse a cron expression.

        Args:
            expression: Cron expression (5 fields: minute hour day month weekday)

        Returns:
            Parsed CronExpression

        Raises:
            InvalidExpression: If the expression does not have exactly 5 fields
                or contains a step that is not a positive integer
        """
        if not isinstance(expression, str):
            raise InvalidExpression(
                f"Invalid cron expression: {expression!r}", expression=str(expression)
            )

        parts = expression.split()
        if len(parts) != 5:
            raise InvalidExpression(
                f"Invalid cron expression: {expression!r} "
                "(expected 5 fields: minute hour day month day_of_week)",
                expression=expression,
            )

        for part in parts:
            _validate_steps(part, expression)

        return cls(*parts, expression=" ".join(parts))

    @property
    def parts(self) -> Tuple[str, ...]:
        return (
            self.minute,
            self.hour,
            self.day_of_month,
            self.month,
            self.day_of_week,
        )

    def matches(self, instant: datetime) -> bool:
        """
        Check whether an instant matches this expression.

        The instant is evaluated in its own timezone (or as-is when naive).
        Seconds are ignored.
        """
        # datetime.weekday() is Monday=0; cron uses Sunday=0
        values = (
            instant.minute,
            instant.hour,
            instant.day,
            instant.month,
            (instant.weekday() + 1) % 7,
        )
        return all(
            match_part(part, value, field)
            for part, value, field in zip(self.parts, values, FIELDS)
        )

    def __str__(self) -> str:
        return self.expression


def parse(expression: str) -> CronExpression:
    """Parse a cron expression. See ``CronExpression.parse``."""
    return CronExpression.parse(expression)


def match(parsed: CronExpression, instant: datetime) -> bool:
    """Check whether ``instant`` matches ``parsed``."""
    return parsed.matches(instant)
