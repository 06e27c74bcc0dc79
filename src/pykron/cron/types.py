"""Type definitions for schedule expressions.

This module defines the field kinds and their ranges, the pydantic model
holding a raw five-field expression, and the CronDateTime candidate tuple
that the scheduler searches over.
"""

import calendar
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from pykron.cron.errors import MalformedFieldError

# Upper bound on carry steps for a single candidate. Reaching it means the
# candidate cannot be satisfied from the given instant.
_MAX_CARRIES = 1000

# Longest possible length of each month (February counts its leap day)
_MAX_DAYS_IN_MONTH = (31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


class FieldRange(NamedTuple):
    """Inclusive bounds of a schedule field."""

    minimum: int
    maximum: int

    def clamp(self, value: int) -> int:
        """Pull a value to the nearest bound if it lies outside the range."""
        return max(self.minimum, min(self.maximum, value))

    def __contains__(self, value: object) -> bool:
        return isinstance(value, int) and self.minimum <= value <= self.maximum


class FieldKind(str, Enum):
    """Calendar field constrained by a schedule expression.

    Values are the matching attribute names of CronDateTime.

    Attributes:
        SECONDS: Second of the minute (0-59).
        MINUTES: Minute of the hour (0-59).
        HOURS: Hour of the day (0-23).
        DAYS_OF_MONTH: Day of the month (1-31).
        MONTHS: Month of the year (1-12).
    """

    SECONDS = "second"
    MINUTES = "minute"
    HOURS = "hour"
    DAYS_OF_MONTH = "day_of_month"
    MONTHS = "month"

    @property
    def range(self) -> FieldRange:
        """Inclusive range of valid values for this field."""
        return _FIELD_RANGES[self]


_FIELD_RANGES = {
    FieldKind.SECONDS: FieldRange(0, 59),
    FieldKind.MINUTES: FieldRange(0, 59),
    FieldKind.HOURS: FieldRange(0, 23),
    FieldKind.DAYS_OF_MONTH: FieldRange(1, 31),
    FieldKind.MONTHS: FieldRange(1, 12),
}

# Order in which fields appear in an expression and are folded into candidates
FIELD_ORDER = (
    FieldKind.SECONDS,
    FieldKind.MINUTES,
    FieldKind.HOURS,
    FieldKind.DAYS_OF_MONTH,
    FieldKind.MONTHS,
)


class CronExpression(BaseModel):
    """Raw text of a five-field schedule expression.

    Fields appear in the order second, minute, hour, day of month, month,
    separated by whitespace (e.g. ``"0 0 12 * *"`` for noon every day).

    Attributes:
        seconds: Seconds field text.
        minutes: Minutes field text.
        hours: Hours field text.
        days_of_month: Day-of-month field text.
        months: Month field text.
    """

    model_config = ConfigDict(frozen=True)

    seconds: str = Field(default="*", description="Seconds field (0-59)")
    minutes: str = Field(default="*", description="Minutes field (0-59)")
    hours: str = Field(default="*", description="Hours field (0-23)")
    days_of_month: str = Field(default="*", description="Day-of-month field (1-31)")
    months: str = Field(default="*", description="Month field (1-12)")

    @classmethod
    def from_string(cls, text: str) -> "CronExpression":
        """Split an expression into its five fields.

        Args:
            text: The expression, e.g. ``"*/15 * * * *"``.

        Returns:
            The parsed expression.

        Raises:
            MalformedFieldError: If the text does not have exactly five fields.
        """
        parts = text.split()
        if len(parts) != len(FIELD_ORDER):
            raise MalformedFieldError(
                f"Expected {len(FIELD_ORDER)} fields, got {len(parts)}: {text!r}",
                text=text,
            )
        return cls(**{name: part for name, part in zip(_MODEL_FIELDS, parts)})

    def field(self, kind: FieldKind) -> str:
        """Get the raw text of one field."""
        return getattr(self, _MODEL_FIELDS[FIELD_ORDER.index(kind)])

    def __str__(self) -> str:
        return " ".join(self.field(kind) for kind in FIELD_ORDER)


_MODEL_FIELDS = ("seconds", "minutes", "hours", "days_of_month", "months")


class CronDateTime(NamedTuple):
    """A candidate combination of calendar field values.

    Each field is either a concrete value or None, meaning any value of
    that field keeps the candidate valid.
    """

    second: int | None = None
    minute: int | None = None
    hour: int | None = None
    day_of_month: int | None = None
    month: int | None = None

    def with_field(self, kind: FieldKind, value: int | None) -> "CronDateTime":
        """Return a copy with one field replaced."""
        return self._replace(**{kind.value: value})

    def is_possible(self) -> bool:
        """Check whether some calendar date can ever match this candidate.

        Day 30 of February or day 31 of April never occur; day 29 of
        February does, in leap years.
        """
        if self.month is None or self.day_of_month is None:
            return True
        return self.day_of_month <= _MAX_DAYS_IN_MONTH[self.month - 1]

    def to_near_datetime(self, relatively: datetime) -> datetime | None:
        """Find the earliest instant at or after ``relatively`` matching this candidate.

        Fields are adjusted from the coarsest (month) to the finest (second).
        When a field has already passed its target, the next coarser unit is
        advanced and all finer units reset to their minimum.

        Args:
            relatively: Reference instant. Sub-second parts round up.

        Returns:
            The matching instant, or None if the candidate can never match.
        """
        if not self.is_possible():
            return None

        current = relatively
        if current.microsecond:
            current = current.replace(microsecond=0) + timedelta(seconds=1)

        try:
            for _ in range(_MAX_CARRIES):
                if self.month is not None and current.month != self.month:
                    year = current.year if current.month < self.month else current.year + 1
                    current = current.replace(
                        year=year, month=self.month, day=1, hour=0, minute=0, second=0
                    )
                    continue

                if self.day_of_month is not None and current.day != self.day_of_month:
                    days = calendar.monthrange(current.year, current.month)[1]
                    if current.day < self.day_of_month <= days:
                        current = current.replace(
                            day=self.day_of_month, hour=0, minute=0, second=0
                        )
                    else:
                        current = _start_of_next_month(current)
                    continue

                if self.hour is not None and current.hour != self.hour:
                    if current.hour < self.hour:
                        current = current.replace(hour=self.hour, minute=0, second=0)
                    else:
                        current = current.replace(hour=0, minute=0, second=0) + timedelta(days=1)
                    continue

                if self.minute is not None and current.minute != self.minute:
                    if current.minute < self.minute:
                        current = current.replace(minute=self.minute, second=0)
                    else:
                        current = current.replace(minute=0, second=0) + timedelta(hours=1)
                    continue

                if self.second is not None and current.second != self.second:
                    if current.second < self.second:
                        current = current.replace(second=self.second)
                    else:
                        current = current.replace(second=0) + timedelta(minutes=1)
                    continue

                if not _exists(current):
                    # Wall time skipped by a DST change; resume after the gap
                    current = _end_of_gap(current)
                    continue

                return current
        except (OverflowError, ValueError):
            # Walked past datetime.max
            return None

        return None


def _start_of_next_month(moment: datetime) -> datetime:
    if moment.month == 12:
        return moment.replace(year=moment.year + 1, month=1, day=1, hour=0, minute=0, second=0)
    return moment.replace(month=moment.month + 1, day=1, hour=0, minute=0, second=0)


def _exists(moment: datetime) -> bool:
    """Check that an aware wall time is shown by its zone's clocks.

    Naive values always count as existing.
    """
    if moment.tzinfo is None:
        return True
    round_trip = moment.astimezone(timezone.utc).astimezone(moment.tzinfo)
    return round_trip.replace(tzinfo=None) == moment.replace(tzinfo=None)


def _end_of_gap(moment: datetime) -> datetime:
    """First whole minute after ``moment`` that exists in its zone."""
    current = moment.replace(second=0) + timedelta(minutes=1)
    while not _exists(current):
        current += timedelta(minutes=1)
    return current
