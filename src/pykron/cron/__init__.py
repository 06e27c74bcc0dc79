"""Crontab-like schedules with second resolution.

This package provides:
- Field expansion (lists, ranges, steps, first/last aliases)
- Candidate assembly and next-occurrence search
- Async loops that wait for each occurrence and run user code

Expressions have five whitespace-separated fields: second, minute, hour,
day of month, month.

Example:
    from pykron.cron import build_schedule, do_forever

    scheduler = build_schedule("0 0 12 * *")  # noon every day
    print(scheduler.next())

    await do_forever(scheduler, lambda moment: print("lunch", moment))
"""

from pykron.cron.errors import (
    CronParseError,
    EmptyCandidateSetError,
    InvertedRangeError,
    MalformedFieldError,
)
from pykron.cron.executor import do_forever, do_once, do_while, ticks
from pykron.cron.parser import (
    ANY,
    FieldValues,
    Wildcard,
    is_wildcard,
    parse_days_of_month,
    parse_field,
    parse_hours,
    parse_minutes,
    parse_months,
    parse_seconds,
)
from pykron.cron.schedule import (
    AnyTimeScheduler,
    CronDateTimeScheduler,
    KronScheduler,
    assemble_candidates,
    build_schedule,
    describe_expression,
    fill_with,
    iter_next,
    parse_expression,
    real_time_between,
    time_until_next,
    validate_expression,
)
from pykron.cron.types import (
    FIELD_ORDER,
    CronDateTime,
    CronExpression,
    FieldKind,
    FieldRange,
)

__all__ = [
    # Types
    "FieldKind",
    "FieldRange",
    "FIELD_ORDER",
    "CronExpression",
    "CronDateTime",
    # Errors
    "CronParseError",
    "MalformedFieldError",
    "InvertedRangeError",
    "EmptyCandidateSetError",
    # Parsing
    "ANY",
    "Wildcard",
    "FieldValues",
    "is_wildcard",
    "parse_field",
    "parse_seconds",
    "parse_minutes",
    "parse_hours",
    "parse_days_of_month",
    "parse_months",
    # Schedulers
    "KronScheduler",
    "AnyTimeScheduler",
    "CronDateTimeScheduler",
    "parse_expression",
    "fill_with",
    "assemble_candidates",
    "build_schedule",
    # Schedule utilities
    "validate_expression",
    "describe_expression",
    "iter_next",
    "real_time_between",
    "time_until_next",
    # Execution loops
    "do_once",
    "do_while",
    "do_forever",
    "ticks",
]
