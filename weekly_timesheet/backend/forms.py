"""Schemas and validation for timesheet entries.

Entries are dataclasses in memory and camelCase dictionaries on disk, the
same shape the weekly store has always used.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .utils import MAX_DAILY_HOURS, round_hours

if TYPE_CHECKING:
    from .config import ReferenceData
    from .dates import WeekRange


def new_entry_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Entry:
    """One unit of recorded work."""

    date: str
    id: str = field(default_factory=new_entry_id)
    start_date: str = ""
    end_date: str = ""
    task: str = ""
    zone: str = ""
    project_code: str = ""
    product_module: str = ""
    activity_type: str = ""
    regular_hours: float = 0.0
    ot_hours: float = 0.0
    ttl_hours: float = 0.0
    employee_name: str = ""
    internal_or_outsource: str = ""
    comments: str = ""
    pm: str = ""

    def __post_init__(self) -> None:
        if not self.start_date:
            self.start_date = self.date
        if not self.end_date:
            self.end_date = self.date

    def copy(self, **changes: Any) -> Entry:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {_CAMEL[f.name]: getattr(self, f.name) for f in fields(Entry)}


@dataclass
class NormalizedEntry(Entry):
    """Export-time copy of an Entry carrying normalization bookkeeping."""

    original_hours: float | None = None
    is_normalized: bool = False

    @classmethod
    def from_entry(cls, entry: Entry) -> NormalizedEntry:
        if isinstance(entry, NormalizedEntry):
            return replace(entry)
        return cls(**{f.name: getattr(entry, f.name) for f in fields(Entry)})


@dataclass
class BasicInfo:
    """The single employee identity shared by every week."""

    employee_name: str
    employee_type: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"employeeName": self.employee_name, "employeeType": self.employee_type}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BasicInfo | None:
        if not data:
            return None
        return cls(
            employee_name=str(data.get("employeeName") or "").strip(),
            employee_type=str(data.get("employeeType") or "").strip(),
        )


_CAMEL = {
    "id": "id",
    "date": "date",
    "start_date": "startDate",
    "end_date": "endDate",
    "task": "task",
    "zone": "zone",
    "project_code": "projectCode",
    "product_module": "productModule",
    "activity_type": "activityType",
    "regular_hours": "regularHours",
    "ot_hours": "otHours",
    "ttl_hours": "ttlHours",
    "employee_name": "employeeName",
    "internal_or_outsource": "internalOrOutsource",
    "comments": "comments",
    "pm": "pm",
}

# Older stored records used different keys for a few fields.
_LEGACY_KEYS = {
    "project_code": ("project",),
    "employee_name": ("name",),
    "ot_hours": ("overtimeHours",),
}

_HOUR_FIELDS = ("regular_hours", "ot_hours", "ttl_hours")


def from_dict(data: dict[str, Any]) -> Entry:
    """Convert a stored camelCase dictionary to an `Entry` with basic coercion."""
    values: dict[str, Any] = {}
    for name, key in _CAMEL.items():
        raw = data.get(key)
        if raw in (None, ""):
            for legacy in _LEGACY_KEYS.get(name, ()):
                if data.get(legacy) not in (None, ""):
                    raw = data[legacy]
                    break
        if name in _HOUR_FIELDS:
            values[name] = round_hours(raw)
        elif raw is not None:
            values[name] = str(raw)
    if not values.get("id"):
        values.pop("id", None)
    values.setdefault("date", "")
    if not values["ttl_hours"]:
        values["ttl_hours"] = round_hours(values["regular_hours"] + values["ot_hours"])
    return Entry(**values)


def validate(
    entry: Entry,
    *,
    week: WeekRange | None = None,
    reference: ReferenceData | None = None,
) -> list[str]:
    """Return a list of human-readable issues if validation fails."""
    issues: list[str] = []
    if not entry.task.strip():
        issues.append("Task is required.")
    if not entry.zone.strip():
        issues.append("Zone is required.")
    if not entry.activity_type.strip():
        issues.append("Activity type is required.")
    if not entry.date.strip():
        issues.append("Date is required.")
    if not 0 <= entry.regular_hours <= MAX_DAILY_HOURS:
        issues.append("Regular hours must be between 0 and 24.")
    if not 0 <= entry.ot_hours <= MAX_DAILY_HOURS:
        issues.append("OT hours must be between 0 and 24.")

    parsed: dict[str, Any] = {}
    for label, value in (("Date", entry.date), ("Start date", entry.start_date), ("End date", entry.end_date)):
        if not value:
            continue
        try:
            parsed[label] = datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            issues.append(f"{label} must be YYYY-MM-DD: {value}")
    start, end = parsed.get("Start date"), parsed.get("End date")
    if start and end and start > end:
        issues.append("End date cannot be earlier than start date.")
    if week is not None:
        for label, day in parsed.items():
            if day not in week:
                issues.append(f"{label} {day.isoformat()} is outside the week {week.label()}.")

    if reference is not None and not reference.is_empty():
        if entry.zone and reference.zones() and entry.zone not in reference.zones():
            issues.append(f"Unknown zone: {entry.zone}")
        if entry.project_code and reference.projects and not reference.find_project(entry.project_code):
            issues.append(f"Unknown project: {entry.project_code}")
        if (
            entry.activity_type
            and reference.activity_types
            and not reference.activity_type_exists(entry.activity_type)
        ):
            issues.append(f"Unknown activity type: {entry.activity_type}")
    return issues
