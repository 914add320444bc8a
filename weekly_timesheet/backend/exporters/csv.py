"""CSV export utilities for weekly timesheets."""

from __future__ import annotations

import csv
import io
import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..forms import BasicInfo, Entry
from ..normalize import needs_normalization, normalize_for_export
from ..storage import TimesheetStore
from ..utils import DEFAULT_WEEKLY_CAP, format_hours

logger = logging.getLogger(__name__)

EXPORT_HEADERS = [
    "Name",
    "Zone",
    "Project",
    "Product Module",
    "Activity Type",
    "Task",
    "Regular Hours",
    "OT Hours",
    "TTL_Hours",
    "Date",
    "Start Date",
    "End Date",
    "Comments",
    "PM",
    "InternalOrOutsource",
]


def render_csv(rows: Iterable[dict[str, object]], fieldnames: Sequence[str]) -> str:
    """Render an iterable of dict rows to a CSV string with given headers.

    - Unknown keys are ignored to keep output stable.
    - Values are stringified via the csv module.
    """
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=list(fieldnames), extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow(row or {})
    return buf.getvalue()


def entry_row(entry: Entry, basic_info: BasicInfo | None) -> dict[str, object]:
    """Map an entry to the export columns; name and type come from the basic info."""
    name = basic_info.employee_name if basic_info else entry.employee_name
    kind = basic_info.employee_type if basic_info else entry.internal_or_outsource
    ttl = entry.ttl_hours or entry.regular_hours + entry.ot_hours
    return {
        "Name": name,
        "Zone": entry.zone,
        "Project": entry.project_code,
        "Product Module": entry.product_module,
        "Activity Type": entry.activity_type,
        "Task": entry.task,
        "Regular Hours": format_hours(entry.regular_hours),
        "OT Hours": format_hours(entry.ot_hours),
        "TTL_Hours": format_hours(ttl),
        "Date": entry.date,
        "Start Date": entry.start_date,
        "End Date": entry.end_date,
        "Comments": entry.comments,
        "PM": entry.pm,
        "InternalOrOutsource": kind,
    }


def generate_csv_content(entries: Iterable[Entry], basic_info: BasicInfo | None) -> str:
    return render_csv((entry_row(e, basic_info) for e in entries), EXPORT_HEADERS)


def write_csv_file(csv_text: str, path: str) -> str:
    """Write CSV text with a UTF-8 BOM so spreadsheet apps detect the encoding."""
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    with open(path, "w", encoding="utf-8-sig", newline="") as f:
        f.write(csv_text)
    return path


@dataclass
class ExportResult:
    week_key: str
    csv_text: str
    filename: str
    entry_count: int
    normalized: bool


def export_filename(week_key: str) -> str:
    return f"timesheet_{week_key}.csv"


def export_week(
    store: TimesheetStore, week_key: str, *, cap: float = DEFAULT_WEEKLY_CAP
) -> ExportResult:
    """Render one stored week as CSV, capping regular hours when the week exceeds ``cap``."""
    entries: Sequence[Entry] = store.get_week_entries(week_key)
    normalized = needs_normalization(entries, cap)
    if normalized:
        entries = normalize_for_export(entries, cap)
        logger.info("Week %s exceeds %sh of regular time; export is normalized", week_key, cap)
    csv_text = generate_csv_content(entries, store.load_basic_info())
    return ExportResult(
        week_key=week_key,
        csv_text=csv_text,
        filename=export_filename(week_key),
        entry_count=len(entries),
        normalized=normalized,
    )
