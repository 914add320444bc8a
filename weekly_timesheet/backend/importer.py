"""CSV import into a chosen week.

The import runs as a chain of stages: basic-info bootstrap, identity check,
date alignment, row materialization, merge decision and persistence. Stages
that need the user's consent await a `Confirm` callback; a "no" ends the run
with an `Aborted` result and nothing further is written.

Writes happen at two points only. The basic info is saved right after the
user accepts it, before the merge decision. The timesheet collection is
saved once, after the merge decision is accepted.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar, Union

from .aligner import AlignmentResult, align_rows
from .dates import make_week_key, parse_week_key, week_range_from_key
from .errors import ParseError, StorageFault, TimesheetError, UserDeclinedError, ValidationError
from .forms import BasicInfo, Entry
from .parsers import Row, parse_csv, parse_hours, pick_field
from .storage import TimesheetStore
from .utils import round_hours

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROMPT_BASIC_INFO = "basic_info"
PROMPT_NAME_MISMATCH = "name_mismatch"
PROMPT_MERGE = "merge"


@dataclass
class ConfirmPrompt:
    """A yes/no question put to the user before a consequential step."""

    kind: str
    message: str


Confirm = Callable[[ConfirmPrompt], Awaitable[bool]]
Notify = Callable[[str], None]


@dataclass
class Proceed(Generic[T]):
    value: T


@dataclass
class Aborted:
    error: TimesheetError

    @property
    def reason(self) -> str:
        return self.error.message

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, UserDeclinedError)

    @property
    def failures(self) -> list[str]:
        return list(getattr(self.error, "failures", []))


StageResult = Union[Proceed[T], Aborted]


@dataclass
class ImportSummary:
    target_week_key: str
    imported_count: int
    source_week_key: str | None = None
    failures: list[str] = field(default_factory=list)
    merged_with: int = 0

    def message(self) -> str:
        parts = [f"Imported {self.imported_count} entries into {self.target_week_key}."]
        if self.source_week_key and self.source_week_key != self.target_week_key:
            parts.append(f"Dates moved from {self.source_week_key}.")
        if self.merged_with:
            parts.append(f"Appended after {self.merged_with} existing entries.")
        if self.failures:
            parts.append(f"{len(self.failures)} rows skipped:")
            parts.extend(self.failures)
        return "\n".join(parts)


def extract_basic_info(rows: Sequence[Row]) -> BasicInfo | None:
    """Take name and type from the first row that has a non-blank name."""
    for row in rows:
        name = pick_field(row, "employeeName")
        if name:
            return BasicInfo(employee_name=name, employee_type=pick_field(row, "employeeType"))
    return None


def distinct_row_names(rows: Sequence[Row]) -> list[str]:
    names: list[str] = []
    for row in rows:
        name = pick_field(row, "employeeName")
        if name and name not in names:
            names.append(name)
    return names


def materialize_entry(row: Row, dates: tuple[str, str, str], info: BasicInfo) -> Entry:
    """Build an Entry from one imported row; identity always comes from ``info``."""
    regular = parse_hours(pick_field(row, "regularHours"))
    ot = parse_hours(pick_field(row, "otHours"))
    ttl = parse_hours(pick_field(row, "ttlHours")) or regular + ot
    date, start_date, end_date = dates
    return Entry(
        date=date,
        start_date=start_date,
        end_date=end_date,
        task=pick_field(row, "task"),
        zone=pick_field(row, "zone"),
        project_code=pick_field(row, "projectCode"),
        product_module=pick_field(row, "productModule"),
        activity_type=pick_field(row, "activityType"),
        regular_hours=round_hours(regular),
        ot_hours=round_hours(ot),
        ttl_hours=round_hours(ttl),
        employee_name=info.employee_name,
        internal_or_outsource=info.employee_type,
        comments=pick_field(row, "comments"),
        pm=pick_field(row, "pm"),
    )


class ImportMerger:
    """Runs one CSV import against a store. Only one run should be active at a time."""

    def __init__(
        self,
        store: TimesheetStore,
        confirm: Confirm,
        *,
        notify: Notify | None = None,
        refresh: Callable[[], None] | None = None,
    ) -> None:
        self.store = store
        self.confirm = confirm
        self.notify = notify
        self.refresh = refresh

    async def run_text(self, raw_text: str, target_week_key: str) -> ImportSummary | Aborted:
        rows = parse_csv(raw_text)
        if not rows:
            return self._abort(ValidationError("The CSV file has no data rows."))
        return await self.run(rows, target_week_key)

    async def run(self, rows: Sequence[Row], target_week_key: str) -> ImportSummary | Aborted:
        try:
            target = make_week_key(*parse_week_key(target_week_key))
        except ParseError as exc:
            return self._abort(ValidationError(exc.message))
        logger.info("Importing %d rows into %s", len(rows), target)

        try:
            info_stage = await self._resolve_basic_info(rows)
            if isinstance(info_stage, Aborted):
                return self._abort(info_stage.error)
            info = info_stage.value

            identity_stage = await self._check_identity(rows, info)
            if isinstance(identity_stage, Aborted):
                return self._abort(identity_stage.error)

            alignment = align_rows(rows, target)
            entries_stage = self._materialize(alignment, info)
            if isinstance(entries_stage, Aborted):
                return self._abort(entries_stage.error)
            entries = entries_stage.value

            merge_stage = await self._merge(target, entries)
            if isinstance(merge_stage, Aborted):
                return self._abort(merge_stage.error)
            timesheets, existing = merge_stage.value

            self.store.save_all_timesheets(timesheets)
        except StorageFault as exc:
            return self._abort(exc)

        if self.refresh is not None:
            self.refresh()
        summary = ImportSummary(
            target_week_key=target,
            imported_count=len(entries),
            source_week_key=alignment.source_week_key if alignment.shifted else None,
            failures=[str(f) for f in alignment.failures],
            merged_with=existing,
        )
        logger.info("Imported %d entries into %s", summary.imported_count, target)
        self._notify(summary.message())
        return summary

    # --- Stages ---

    async def _resolve_basic_info(self, rows: Sequence[Row]) -> StageResult[BasicInfo]:
        existing = self.store.load_basic_info()
        if existing is not None:
            return Proceed(existing)
        info = extract_basic_info(rows)
        if info is None:
            return Aborted(
                ValidationError(
                    "No basic info is set up and the CSV has no employee name. "
                    "Set the basic info first or include a Name column."
                )
            )
        prompt = ConfirmPrompt(
            kind=PROMPT_BASIC_INFO,
            message=(
                "No basic info is set up yet. Use the CSV identity?\n"
                f"Name: {info.employee_name}\nType: {info.employee_type or '(blank)'}"
            ),
        )
        if not await self.confirm(prompt):
            return _declined(prompt, "Import cancelled: basic info was not accepted.")
        self.store.save_basic_info(info)
        logger.info("Saved basic info for %s from CSV", info.employee_name)
        return Proceed(info)

    async def _check_identity(self, rows: Sequence[Row], info: BasicInfo) -> StageResult[BasicInfo]:
        others = [n for n in distinct_row_names(rows) if n != info.employee_name]
        if not others:
            return Proceed(info)
        prompt = ConfirmPrompt(
            kind=PROMPT_NAME_MISMATCH,
            message=(
                f"The CSV names ({', '.join(others)}) differ from the basic info name "
                f"{info.employee_name}. Import anyway? All entries will use {info.employee_name}."
            ),
        )
        if not await self.confirm(prompt):
            return _declined(prompt, "Import cancelled: employee name mismatch.")
        return Proceed(info)

    def _materialize(self, alignment: AlignmentResult, info: BasicInfo) -> StageResult[list[Entry]]:
        entries = [
            materialize_entry(a.row, (a.date, a.start_date, a.end_date), info) for a in alignment.rows
        ]
        if not entries:
            failures = [str(f) for f in alignment.failures]
            return Aborted(ValidationError("No valid rows to import.", failures))
        return Proceed(entries)

    async def _merge(
        self, target: str, incoming: list[Entry]
    ) -> StageResult[tuple[dict[str, list[Entry]], int]]:
        timesheets = self.store.load_all_timesheets()
        existing = timesheets.get(target, [])
        if existing:
            rng = week_range_from_key(target)
            prompt = ConfirmPrompt(
                kind=PROMPT_MERGE,
                message=(
                    f"Week {target} ({rng.label()}) already has {len(existing)} entries. "
                    f"Append {len(incoming)} imported entries?"
                ),
            )
            if not await self.confirm(prompt):
                return _declined(prompt, f"Import cancelled: {target} was left unchanged.")
        timesheets[target] = existing + incoming
        return Proceed((timesheets, len(existing)))

    # --- Internal helpers ---

    def _abort(self, error: TimesheetError) -> Aborted:
        if isinstance(error, UserDeclinedError):
            logger.info("%s", error.message)
        else:
            logger.warning("Import aborted: %s", error.message)
        message = error.message
        failures = getattr(error, "failures", [])
        if failures:
            message = "\n".join([message, *failures])
        self._notify(message)
        return Aborted(error)

    def _notify(self, message: str) -> None:
        if self.notify is not None:
            self.notify(message)


def _declined(prompt: ConfirmPrompt, message: str) -> Aborted:
    return Aborted(UserDeclinedError(message, kind=prompt.kind))


async def import_from_csv(
    raw_text: str,
    target_week_key: str,
    *,
    store: TimesheetStore,
    confirm: Confirm,
    notify: Notify | None = None,
    refresh: Callable[[], None] | None = None,
) -> ImportSummary:
    """Import CSV text into ``target_week_key``.

    Raises:
        ValidationError: no usable rows, no employee name, or a bad week key.
        UserDeclinedError: a confirmation prompt was declined.
        StorageFault: the store could not be written.
    """
    merger = ImportMerger(store, confirm, notify=notify, refresh=refresh)
    result = await merger.run_text(raw_text, target_week_key)
    if isinstance(result, Aborted):
        raise result.error
    return result
