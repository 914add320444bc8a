"""Week-level operations: create, delete, copy between weeks, entry upserts, summaries."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from .aligner import shift_iso_date
from .dates import (
    WeekRange,
    day_offset_between,
    is_valid_week_key,
    make_week_key,
    parse_week_key,
    week_range_from_key,
)
from .errors import ParseError, UserDeclinedError, ValidationError
from .forms import Entry, new_entry_id
from .importer import Confirm, ConfirmPrompt
from .storage import TimesheetStore
from .utils import DEFAULT_WEEKLY_CAP, classify_week, round_hours

logger = logging.getLogger(__name__)

PROMPT_OVERWRITE = "overwrite"


def normalize_week_key(week_key: str) -> str:
    """Return the canonical ``YYYY-Wnn`` form, raising ValidationError if malformed."""
    try:
        return make_week_key(*parse_week_key(week_key))
    except ParseError as exc:
        raise ValidationError(exc.message) from exc


def create_week(store: TimesheetStore, week_key: str) -> str:
    key = normalize_week_key(week_key)
    if store.has_week(key):
        raise ValidationError(f"Week {key} already exists.")
    store.save_week_entries(key, [])
    logger.info("Created empty week %s", key)
    return key


def delete_week(store: TimesheetStore, week_key: str) -> bool:
    key = normalize_week_key(week_key)
    deleted = store.delete_week(key)
    if deleted:
        logger.info("Deleted week %s", key)
    return deleted


def upsert_entry(entries: list[Entry], entry: Entry) -> None:
    """Insert or replace an entry by id.

    - If an entry with the same id exists it is replaced in place.
    - Otherwise the entry is appended, preserving list order.
    """
    idx = next((i for i, e in enumerate(entries) if e.id == entry.id), -1)
    if idx >= 0:
        entries[idx] = entry
    else:
        entries.append(entry)


def save_entry(store: TimesheetStore, week_key: str, entry: Entry) -> list[Entry]:
    key = normalize_week_key(week_key)
    entries = store.get_week_entries(key)
    upsert_entry(entries, entry)
    store.save_week_entries(key, entries)
    return entries


def remove_entry(store: TimesheetStore, week_key: str, entry_id: str) -> bool:
    key = normalize_week_key(week_key)
    entries = store.get_week_entries(key)
    kept = [e for e in entries if e.id != entry_id]
    if len(kept) == len(entries):
        return False
    store.save_week_entries(key, kept)
    return True


def shift_entries(entries: Sequence[Entry], day_offset: int) -> list[Entry]:
    """Copy entries with new ids and every date field moved by ``day_offset`` days."""
    return [
        e.copy(
            id=new_entry_id(),
            date=shift_iso_date(e.date, day_offset),
            start_date=shift_iso_date(e.start_date, day_offset),
            end_date=shift_iso_date(e.end_date, day_offset),
        )
        for e in entries
    ]


async def copy_week(
    store: TimesheetStore,
    source_week_key: str,
    target_week_key: str,
    *,
    confirm: Confirm,
) -> list[Entry]:
    """Copy a week's entries onto another week, replacing whatever the target held.

    Raises:
        ValidationError: malformed keys or an empty source week.
        UserDeclinedError: the user refused to overwrite an existing target week.
    """
    source = normalize_week_key(source_week_key)
    target = normalize_week_key(target_week_key)
    timesheets = store.load_all_timesheets()
    source_entries = timesheets.get(source, [])
    if not source_entries:
        raise ValidationError(f"Week {source} has no entries to copy.")

    copied = shift_entries(source_entries, day_offset_between(source, target))
    if target in timesheets:
        prompt = ConfirmPrompt(
            kind=PROMPT_OVERWRITE,
            message=f"Week {target} already has timesheet entries. Overwrite it?",
        )
        if not await confirm(prompt):
            raise UserDeclinedError(
                f"Copy cancelled: {target} was left unchanged.", kind=PROMPT_OVERWRITE
            )

    timesheets[target] = copied
    store.save_all_timesheets(timesheets)
    logger.info("Copied %d entries from %s to %s", len(copied), source, target)
    return copied


@dataclass
class WeekSummary:
    week_key: str
    range: WeekRange
    entry_count: int
    total_hours: float
    regular_hours: float
    ot_hours: float
    is_complete: bool
    note: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "week": self.week_key,
            "start": self.range.start.isoformat(),
            "end": self.range.end.isoformat(),
            "entries": self.entry_count,
            "total_hours": self.total_hours,
            "regular_hours": self.regular_hours,
            "ot_hours": self.ot_hours,
            "complete": self.is_complete,
            "note": self.note,
        }


def week_summary(week_key: str, entries: Sequence[Entry], cap: float = DEFAULT_WEEKLY_CAP) -> WeekSummary:
    total = round_hours(sum(e.ttl_hours for e in entries))
    return WeekSummary(
        week_key=week_key,
        range=week_range_from_key(week_key),
        entry_count=len(entries),
        total_hours=total,
        regular_hours=round_hours(sum(e.regular_hours for e in entries)),
        ot_hours=round_hours(sum(e.ot_hours for e in entries)),
        is_complete=total >= cap,
        note=classify_week(total, cap),
    )


def list_week_summaries(store: TimesheetStore, cap: float = DEFAULT_WEEKLY_CAP) -> list[WeekSummary]:
    """Summaries for every stored week, newest first; malformed keys are skipped."""
    summaries = [
        week_summary(key, entries, cap)
        for key, entries in store.load_all_timesheets().items()
        if is_valid_week_key(key)
    ]
    return sorted(summaries, key=lambda s: s.range.start, reverse=True)
