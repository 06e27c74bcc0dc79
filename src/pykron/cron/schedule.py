"""Schedule building and next-occurrence computation.

This module folds expanded fields into CronDateTime candidates, wraps them
in an immutable scheduler, and answers "when is the next matching instant?"
for any reference time.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from pykron.config import settings
from pykron.cron.errors import CronParseError, EmptyCandidateSetError
from pykron.cron.parser import ANY, FieldValues, is_wildcard, parse_field
from pykron.cron.types import FIELD_ORDER, CronDateTime, CronExpression, FieldKind

logger = logging.getLogger(__name__)

# Zone name meaning "naive local wall-clock time"
LOCAL_TIMEZONE = "local"


def parse_expression(expression: CronExpression) -> dict[FieldKind, FieldValues]:
    """Expand every field of an expression.

    Args:
        expression: The raw expression.

    Returns:
        Mapping of field kind to its expansion.
    """
    return {kind: parse_field(expression.field(kind), kind) for kind in FIELD_ORDER}


def fill_with(
    candidates: Iterable[CronDateTime],
    kind: FieldKind,
    values: FieldValues,
) -> list[CronDateTime]:
    """Fold one field's expansion into a list of candidates.

    A wildcard leaves the candidates untouched. Concrete values replace
    the list with its cross product against those values.
    """
    if is_wildcard(values):
        return list(candidates)
    ordered = sorted(values)
    return [candidate.with_field(kind, value) for candidate in candidates for value in ordered]


def assemble_candidates(
    fields: CronExpression | Mapping[FieldKind, FieldValues],
) -> list[CronDateTime]:
    """Build the candidate list for an expression.

    Fields are folded in expression order (seconds first, months last),
    starting from a single unconstrained candidate. Missing fields in a
    mapping count as wildcards.

    Args:
        fields: A raw expression or already expanded fields.

    Returns:
        The candidate list.

    Raises:
        EmptyCandidateSetError: If some field has no values at all.
    """
    if isinstance(fields, CronExpression):
        fields = parse_expression(fields)

    candidates = [CronDateTime()]
    for kind in FIELD_ORDER:
        candidates = fill_with(candidates, kind, fields.get(kind, ANY))

    if not candidates:
        raise EmptyCandidateSetError("Schedule produced no candidate times")

    return candidates


class KronScheduler(ABC):
    """Computes the next instant matching a schedule.

    Schedulers are immutable; every query is a pure function of the
    scheduler and the reference instant, so one instance can be shared
    freely between tasks and threads.

    Attributes:
        timezone: Zone that schedule fields are matched in. None means the
            reference instant's own zone (naive local time for ``now``).
        expression: The expression this scheduler was built from, if any.
    """

    def __init__(
        self,
        tz: tzinfo | None = None,
        expression: CronExpression | None = None,
    ) -> None:
        self.timezone = tz
        self.expression = expression

    def now(self) -> datetime:
        """Current time in the scheduler's zone."""
        return datetime.now(self.timezone)

    def localize(self, relatively: datetime | None) -> datetime:
        """Bring a reference instant into the scheduler's zone (now if omitted)."""
        if relatively is None:
            return self.now()
        if self.timezone is None:
            return relatively
        if relatively.tzinfo is None:
            return relatively.replace(tzinfo=self.timezone)
        return relatively.astimezone(self.timezone)

    @abstractmethod
    def next(self, relatively: datetime | None = None) -> datetime | None:
        """Get the earliest matching instant at or after ``relatively``.

        Args:
            relatively: Reference instant (defaults to now).

        Returns:
            The next matching instant, or None if the schedule never
            matches again.
        """

    def next_after(self, relatively: datetime | None = None) -> datetime | None:
        """Alias of next()."""
        return self.next(relatively)

    def next_or_now(self, relatively: datetime | None = None) -> datetime:
        """Get the next matching instant, falling back to the reference instant."""
        relatively = self.localize(relatively)
        return self.next(relatively) or relatively

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.expression)!r}, tz={self.timezone!r})"


class AnyTimeScheduler(KronScheduler):
    """Scheduler for an expression without constraints: every instant matches."""

    def next(self, relatively: datetime | None = None) -> datetime | None:
        return self.localize(relatively)


class CronDateTimeScheduler(KronScheduler):
    """Scheduler backed by a list of CronDateTime candidates."""

    def __init__(
        self,
        candidates: Iterable[CronDateTime],
        tz: tzinfo | None = None,
        expression: CronExpression | None = None,
    ) -> None:
        super().__init__(tz, expression)
        self._candidates = tuple(c for c in candidates if c.is_possible())
        if not self._candidates:
            logger.warning(f"Schedule {str(expression)!r} matches no calendar date")

    @property
    def candidates(self) -> tuple[CronDateTime, ...]:
        """Candidates that can match some calendar date."""
        return self._candidates

    def next(self, relatively: datetime | None = None) -> datetime | None:
        relatively = self.localize(relatively)
        nearest = (candidate.to_near_datetime(relatively) for candidate in self._candidates)
        return min((moment for moment in nearest if moment is not None), default=None)


def resolve_timezone(tz: tzinfo | str | None) -> tzinfo | None:
    """Turn a zone argument into a tzinfo.

    Args:
        tz: A tzinfo, an IANA zone name, ``"local"`` for naive local time,
            or None for the configured default.

    Returns:
        The zone, or None for naive local time.
    """
    if isinstance(tz, tzinfo):
        return tz
    name = tz if tz is not None else settings.timezone
    if not name or name.lower() == LOCAL_TIMEZONE:
        return None
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def build_schedule(
    text: str | CronExpression,
    tz: tzinfo | str | None = None,
) -> KronScheduler:
    """Build a scheduler from a five-field expression.

    Args:
        text: Expression text (second minute hour day-of-month month) or a
            CronExpression.
        tz: Zone the fields are matched in (see resolve_timezone).

    Returns:
        AnyTimeScheduler for an all-wildcard expression, otherwise a
        CronDateTimeScheduler.

    Raises:
        CronParseError: If the expression is malformed.

    Example:
        scheduler = build_schedule("0 0 12 * *")
        scheduler.next(datetime(2021, 3, 15, 8, tzinfo=timezone.utc))
        # -> 2021-03-15 12:00:00+00:00
    """
    expression = text if isinstance(text, CronExpression) else CronExpression.from_string(text)
    fields = parse_expression(expression)
    zone = resolve_timezone(tz)

    if all(is_wildcard(values) for values in fields.values()):
        logger.debug(f"Schedule {str(expression)!r} matches every instant")
        return AnyTimeScheduler(zone, expression)

    candidates = assemble_candidates(fields)
    logger.debug(f"Built schedule {str(expression)!r} with {len(candidates)} candidates")
    return CronDateTimeScheduler(candidates, zone, expression)


def validate_expression(text: str) -> bool:
    """Validate a schedule expression.

    Args:
        text: The expression to validate.

    Returns:
        True if the expression is valid.
    """
    try:
        parse_expression(CronExpression.from_string(text))
        return True
    except CronParseError:
        return False


_FIELD_NAMES = {
    FieldKind.SECONDS: "second",
    FieldKind.MINUTES: "minute",
    FieldKind.HOURS: "hour",
    FieldKind.DAYS_OF_MONTH: "day of month",
    FieldKind.MONTHS: "month",
}


def describe_expression(text: str) -> str:
    """Get a human-readable description of a schedule expression.

    Args:
        text: The expression.

    Returns:
        Description such as "second 0, minute 0, hour 12, every day of
        month, every month", or an error message.
    """
    try:
        fields = parse_expression(CronExpression.from_string(text))
    except CronParseError as e:
        return f"Invalid expression: {e}"

    descriptions = []
    for kind in FIELD_ORDER:
        values = fields[kind]
        if is_wildcard(values):
            descriptions.append(f"every {_FIELD_NAMES[kind]}")
        else:
            descriptions.append(f"{_FIELD_NAMES[kind]} {_compress(sorted(values))}")
    return ", ".join(descriptions)


def _compress(values: list[int]) -> str:
    """Render sorted values with consecutive runs collapsed, e.g. "1-3,7"."""
    runs: list[list[int]] = []
    for value in values:
        if runs and value == runs[-1][-1] + 1:
            runs[-1].append(value)
        else:
            runs.append([value])
    return ",".join(
        f"{run[0]}-{run[-1]}" if len(run) > 2 else ",".join(map(str, run)) for run in runs
    )


def iter_next(
    scheduler: KronScheduler,
    relatively: datetime | None = None,
    count: int = 1,
) -> Iterator[datetime]:
    """Iterate over upcoming instants of a schedule.

    Each instant is strictly after the previous one; iteration stops early
    if the schedule never matches again.

    Args:
        scheduler: The scheduler.
        relatively: Reference instant (defaults to now).
        count: Maximum number of instants.

    Yields:
        Matching instants in ascending order.
    """
    current = relatively or scheduler.now()
    for _ in range(count):
        found = scheduler.next(current)
        if found is None:
            return
        yield found
        current = found + timedelta(seconds=1)


def time_until_next(
    scheduler: KronScheduler,
    now: datetime | None = None,
) -> timedelta | None:
    """Get the time remaining until the next scheduled instant.

    Args:
        scheduler: The scheduler.
        now: Current time.

    Returns:
        Time until the next instant, or None if there is none.
    """
    now = scheduler.localize(now)
    next_run = scheduler.next(now)

    if next_run is None:
        return None

    return real_time_between(now, next_run)


def real_time_between(start: datetime, end: datetime) -> timedelta:
    """Elapsed real time from ``start`` to ``end``.

    Both instants are converted to UTC before subtracting, so a daylight
    saving change in between is counted. Naive values are read as system
    local time.
    """
    return end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
