"""Expansion of schedule fields into sets of values.

A field is a comma-separated list of segments. Each segment is one of:

- ``*``: every value of the field (makes the whole field a wildcard)
- ``N``: a single value
- ``N-M``: every value from N to M inclusive
- ``[N]/M``: N (default 0) and every M-th value after it, up to the maximum

The aliases ``f`` and ``l`` stand for the first and last value of the field
and may appear anywhere a number can. Numbers outside the field's range are
clamped to the nearest bound.
"""

import logging
import re

from pykron.cron.errors import InvertedRangeError, MalformedFieldError
from pykron.cron.types import FieldKind, FieldRange

logger = logging.getLogger(__name__)

_INTEGER = re.compile(r"-?\d+")
_RANGE = re.compile(r"(-?\d+)-(-?\d+)")


class Wildcard:
    """Marker for a field that matches every value in its range."""

    _instance: "Wildcard | None" = None

    def __new__(cls) -> "Wildcard":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ANY"

    def __reduce__(self) -> str:
        return "ANY"


ANY = Wildcard()

# Result of expanding one field: the wildcard marker or the concrete values
FieldValues = Wildcard | frozenset[int]


def is_wildcard(values: FieldValues) -> bool:
    """Check whether an expansion leaves its field unconstrained."""
    return values is ANY


def parse_field(text: str, field: FieldKind | FieldRange) -> FieldValues:
    """Expand one field of a schedule expression.

    Args:
        text: The field text, e.g. ``"0/15"`` or ``"1,5-7"``.
        field: The field kind, or an explicit range to expand against.

    Returns:
        ANY if any segment is ``*`` or the segments cover the whole range,
        otherwise the set of values denoted.

    Raises:
        MalformedFieldError: If a segment is not a number, range or step.
        InvertedRangeError: If a range's low end exceeds its high end
            after clamping.
    """
    kind = field if isinstance(field, FieldKind) else None
    data_range = field.range if isinstance(field, FieldKind) else field

    values: set[int] = set()
    for segment in text.split(","):
        token = _substitute_aliases(segment.strip().lower(), data_range)
        if token == "*":
            return ANY
        values.update(_expand_segment(token, data_range, text, kind))

    # Covering the whole range is the same constraint as "*"
    if len(values) == data_range.maximum - data_range.minimum + 1:
        return ANY

    logger.debug(f"Expanded {text!r} to {sorted(values)}")
    return frozenset(values)


def parse_seconds(text: str) -> FieldValues:
    return parse_field(text, FieldKind.SECONDS)


def parse_minutes(text: str) -> FieldValues:
    return parse_field(text, FieldKind.MINUTES)


def parse_hours(text: str) -> FieldValues:
    return parse_field(text, FieldKind.HOURS)


def parse_days_of_month(text: str) -> FieldValues:
    return parse_field(text, FieldKind.DAYS_OF_MONTH)


def parse_months(text: str) -> FieldValues:
    return parse_field(text, FieldKind.MONTHS)


def _substitute_aliases(token: str, data_range: FieldRange) -> str:
    return token.replace("f", str(data_range.minimum)).replace("l", str(data_range.maximum))


def _expand_segment(
    token: str,
    data_range: FieldRange,
    text: str,
    kind: FieldKind | None,
) -> range | list[int]:
    """Expand a single alias-free segment.

    A leading ``-`` is the sign of a number, so ``-5`` is a single value
    (clamped to the minimum), not a range.
    """
    if "-" in token[1:]:
        match = _RANGE.fullmatch(token)
        if match is None:
            raise MalformedFieldError(f"Malformed range {token!r} in {text!r}", text, kind)
        low, high = (data_range.clamp(int(group)) for group in match.groups())
        if low > high:
            raise InvertedRangeError(
                f"Range {token!r} in {text!r} is empty after clamping ({low} > {high})",
                text,
                kind,
            )
        return range(low, high + 1)

    if "/" in token:
        start, _, step = token.partition("/")
        start_num = 0 if start in ("", "*") else _to_int(start, text, kind)
        start_num = data_range.clamp(start_num)
        step_num = data_range.clamp(_to_int(step, text, kind))
        if step_num <= 0:
            raise MalformedFieldError(f"Step must be positive in {text!r}", text, kind)
        return range(start_num, data_range.maximum + 1, step_num)

    return [data_range.clamp(_to_int(token, text, kind))]


def _to_int(token: str, text: str, kind: FieldKind | None) -> int:
    if _INTEGER.fullmatch(token) is None:
        raise MalformedFieldError(f"Expected a number, got {token!r} in {text!r}", text, kind)
    return int(token)
