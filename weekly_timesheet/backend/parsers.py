"""Tolerant parsing of imported CSV text, loose dates, hours and week phrases.

Every tolerant parser here is a small ordered table of candidates tried in
priority order; the first candidate that matches wins.
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Callable, Mapping
from datetime import date as _date, timedelta

from .dates import is_valid_week_key, last_week_key, this_week_key, today_in, week_key_for

Row = Mapping[str, str]

MIN_PLAUSIBLE_YEAR = 1900


def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse CSV text into one dict per data row, keyed by the header names.

    - A leading UTF-8 BOM is dropped; headers and values are stripped.
    - Blank lines are skipped; missing trailing cells become "".
    - Fewer than two lines (header plus one row) yields an empty list.
    """
    body = (text or "").lstrip("\ufeff").strip()
    if not body:
        return []
    reader = csv.reader(io.StringIO(body))
    try:
        headers = [h.strip() for h in next(reader)]
    except StopIteration:
        return []
    rows: list[dict[str, str]] = []
    for values in reader:
        if not any(v.strip() for v in values):
            continue
        cells = [v.strip() for v in values]
        rows.append({h: (cells[i] if i < len(cells) else "") for i, h in enumerate(headers) if h})
    return rows


# Logical field -> header spellings, in precedence order:
# English PascalCase, camelCase, then the Chinese header.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "employeeName": ("Name", "employeeName", "name", "姓名"),
    "employeeType": ("InternalOrOutsource", "internalOrOutsource", "employeeType", "內部或外包"),
    "zone": ("Zone", "zone", "區域"),
    "projectCode": ("Project", "projectCode", "project", "專案"),
    "productModule": ("Product Module", "productModule", "產品模組"),
    "activityType": ("Activity Type", "activityType", "活動類型"),
    "task": ("Task", "task", "任務"),
    "regularHours": ("Regular Hours", "regularHours", "正常工時"),
    "otHours": ("OT Hours", "otHours", "加班工時"),
    "ttlHours": ("TTL_Hours", "Total Hours", "ttlHours", "總工時"),
    "date": ("Date", "date", "日期"),
    "startDate": ("Start Date", "startDate", "開始日期"),
    "endDate": ("End Date", "endDate", "結束日期"),
    "comments": ("Comments", "comments", "備註"),
    "pm": ("PM", "pm", "專案經理"),
}


def pick_field(row: Row, field: str) -> str:
    """Return the first non-blank value among the aliases of ``field``."""
    for header in FIELD_ALIASES[field]:
        value = row.get(header)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def parse_hours(value: object) -> float:
    """Parse an hour cell the lenient way: leading number wins, otherwise 0.

    "7.5" -> 7.5, "8h" -> 8.0, "" / "n/a" -> 0.0. Negative values clamp to 0.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(float(value), 0.0)
    m = _NUMBER_RE.match(str(value or "").strip())
    if not m:
        return 0.0
    try:
        return max(float(m.group(0)), 0.0)
    except ValueError:
        return 0.0


_SEP = r"[-/.]"
_TIME_SUFFIX = r"(?:[ T].*)?"

# (pattern, group order) for loose dates; groups are (year, month, day).
_DATE_FORMATS: list[tuple[re.Pattern[str], Callable[[re.Match[str]], tuple[int, int, int]]]] = [
    (
        re.compile(rf"(\d{{4}}){_SEP}(\d{{1,2}}){_SEP}(\d{{1,2}}){_TIME_SUFFIX}"),
        lambda m: (int(m.group(1)), int(m.group(2)), int(m.group(3))),
    ),
    (
        re.compile(rf"(\d{{1,2}}){_SEP}(\d{{1,2}}){_SEP}(\d{{4}}){_TIME_SUFFIX}"),
        lambda m: (int(m.group(3)), int(m.group(1)), int(m.group(2))),
    ),
    (
        re.compile(r"(\d{4})(\d{2})(\d{2})"),
        lambda m: (int(m.group(1)), int(m.group(2)), int(m.group(3))),
    ),
]


def parse_loose_date(value: object) -> _date | None:
    """Parse a date written with ``-``, ``/`` or ``.`` separators.

    Supported, in order: ``YYYY-M-D`` (optionally followed by a time),
    ``M/D/YYYY`` and compact ``YYYYMMDD``. Years must be after 1900 and the
    day must exist in the calendar; anything else returns None.
    """
    s = str(value or "").strip()
    if not s:
        return None
    for pattern, order in _DATE_FORMATS:
        m = pattern.fullmatch(s)
        if not m:
            continue
        year, month, day = order(m)
        if year <= MIN_PLAUSIBLE_YEAR:
            return None
        try:
            return _date(year, month, day)
        except ValueError:
            return None
    return None


def resolve_week_phrase(
    phrase: str,
    *,
    timezone: str | None = None,
    base_date: str | None = None,
) -> str:
    """Resolve a week phrase to a week key (YYYY-Wnn).

    Supported:
    - Relative: "this week", "last week", "next week".
    - Week keys: "2025-W10" (case-insensitive, returned upper-cased).
    - Any loose date: the week containing it ("2025/03/05").

    Args:
        phrase: The user-provided phrase.
        timezone: Optional IANA timezone used for "this week".
        base_date: Optional YYYY-MM-DD anchor for relative phrases (tests).
    Returns:
        The week key, or empty string if not understood.
    """
    s = (phrase or "").strip().lower()
    if not s:
        return ""
    anchor = parse_loose_date(base_date) if base_date else None

    if is_valid_week_key(s.upper()):
        year, _, week = s.upper().partition("-W")
        return f"{year}-W{int(week):02d}"
    if s in {"this week", "current week", "本週"}:
        return this_week_key(anchor, timezone=timezone)
    if s in {"last week", "previous week", "上週"}:
        return last_week_key(anchor, timezone=timezone)
    if s in {"next week", "下週"}:
        return week_key_for((anchor or today_in(timezone)) + timedelta(days=7))

    day = parse_loose_date(s)
    return week_key_for(day) if day else ""
