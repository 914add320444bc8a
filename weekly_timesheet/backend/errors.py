"""Error taxonomy for timesheet import, export and storage."""

from __future__ import annotations

from collections.abc import Sequence


class TimesheetError(Exception):
    """Base class for all user-facing timesheet failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ParseError(TimesheetError, ValueError):
    """A date, number or week key could not be parsed."""


class ValidationError(TimesheetError):
    """A whole batch is unusable (no employee name, no valid rows, bad week key)."""

    def __init__(self, message: str, failures: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.failures = list(failures)


class UserDeclinedError(TimesheetError):
    """The user answered "no" to a confirmation prompt."""

    def __init__(self, message: str, kind: str) -> None:
        super().__init__(message)
        self.kind = kind


class StorageFault(TimesheetError):
    """The underlying store could not be read or written."""
