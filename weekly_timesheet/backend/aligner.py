"""Re-date imported CSV rows onto a target week.

The source week is taken from the first row with a readable date. Every date
field of every row is then shifted by the distance between the source week's
Monday and the target week's Monday, which keeps weekdays and multi-day spans
intact across month and year boundaries.

Only one offset is computed per batch: a file mixing two source weeks has its
second week shifted by the first week's offset.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date as _date, timedelta

from .dates import day_offset_between, format_date, make_week_key, parse_week_key, week_key_for
from .parsers import Row, parse_loose_date, pick_field

logger = logging.getLogger(__name__)


@dataclass
class RowFailure:
    """A row rejected during import, with its 1-based data row number."""

    row_number: int
    value: str
    reason: str

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.reason} ({self.value!r})"


@dataclass
class AlignedRow:
    row_number: int
    row: Row
    date: str
    start_date: str
    end_date: str


@dataclass
class AlignmentResult:
    target_week_key: str
    source_week_key: str | None = None
    day_offset: int | None = None
    rows: list[AlignedRow] = field(default_factory=list)
    failures: list[RowFailure] = field(default_factory=list)

    @property
    def shifted(self) -> bool:
        return self.day_offset is not None


def detect_source_week(rows: Sequence[Row]) -> str | None:
    """Return the week key of the first row whose primary date parses."""
    for row in rows:
        day = parse_loose_date(pick_field(row, "date"))
        if day is not None:
            return week_key_for(day)
    return None


def align_rows(rows: Sequence[Row], target_week_key: str) -> AlignmentResult:
    """Shift the dates of ``rows`` onto ``target_week_key``.

    Raises:
        ParseError: if ``target_week_key`` is malformed.
    """
    target_week_key = make_week_key(*parse_week_key(target_week_key))
    result = AlignmentResult(target_week_key=target_week_key)
    result.source_week_key = detect_source_week(rows)
    if result.source_week_key is None:
        logger.info("No readable date in %d rows; dates are not shifted", len(rows))
    elif result.source_week_key != target_week_key:
        result.day_offset = day_offset_between(result.source_week_key, target_week_key)
        logger.info(
            "Aligning %s -> %s (%+d days)", result.source_week_key, target_week_key, result.day_offset
        )

    for number, row in enumerate(rows, start=1):
        raw_date = pick_field(row, "date")
        primary = _shift(parse_loose_date(raw_date), result.day_offset)
        if primary is None:
            failure = RowFailure(number, raw_date, "missing or unreadable date")
            logger.warning("Rejected %s", failure)
            result.failures.append(failure)
            continue
        start = _shift(parse_loose_date(pick_field(row, "startDate")), result.day_offset) or primary
        end = _shift(parse_loose_date(pick_field(row, "endDate")), result.day_offset) or primary
        result.rows.append(
            AlignedRow(
                row_number=number,
                row=row,
                date=format_date(primary),
                start_date=format_date(start),
                end_date=format_date(end),
            )
        )
    return result


def shift_iso_date(value: str, day_offset: int) -> str:
    """Shift a stored YYYY-MM-DD value; unreadable values are returned unchanged."""
    day = parse_loose_date(value)
    if day is None:
        return value
    return format_date(day + timedelta(days=day_offset))


def _shift(day: _date | None, day_offset: int | None) -> _date | None:
    if day is None or day_offset is None:
        return day
    return day + timedelta(days=day_offset)
