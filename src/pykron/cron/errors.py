"""Exceptions raised while parsing and building schedules.

Out-of-range numbers are never errors: they are clamped into the field's
range. Only text that cannot be read as a schedule raises.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pykron.cron.types import FieldKind


class CronParseError(ValueError):
    """Base class for schedule expression errors.

    Attributes:
        text: The offending expression or field text.
        kind: The field being parsed, if the error is field-specific.
    """

    def __init__(self, message: str, text: str = "", kind: FieldKind | None = None) -> None:
        super().__init__(message)
        self.text = text
        self.kind = kind


class MalformedFieldError(CronParseError):
    """Raised when a token is not a number after alias substitution."""


class InvertedRangeError(CronParseError):
    """Raised when a range's low end exceeds its high end after clamping."""


class EmptyCandidateSetError(CronParseError):
    """Raised when a schedule cannot produce any candidate time."""
