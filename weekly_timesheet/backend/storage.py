"""Local persistence for weekly timesheets and the shared basic info.

The store is one JSON document with two top-level keys, ``timesheets``
(week key -> list of camelCase entry dicts) and ``globalBasicInfo``. With no
path the document lives in memory, which is what tests and dry runs use.
Every read returns fresh objects; callers never hold a live reference into
the store.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from typing import Any

from .errors import StorageFault
from .forms import BasicInfo, Entry, from_dict as entry_from_dict

logger = logging.getLogger(__name__)

TimesheetCollection = dict[str, list[Entry]]

_TIMESHEETS = "timesheets"
_BASIC_INFO = "globalBasicInfo"


class TimesheetStore:
    def __init__(self, path: str | None = None) -> None:
        self.path = path
        self._memory: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"TimesheetStore(path={self.path!r})"

    # --- Timesheets ---

    def load_all_timesheets(self) -> TimesheetCollection:
        raw = self._read().get(_TIMESHEETS) or {}
        return {key: [entry_from_dict(e) for e in _week_list(value)] for key, value in raw.items()}

    def save_all_timesheets(self, timesheets: TimesheetCollection) -> None:
        doc = self._read()
        doc[_TIMESHEETS] = {
            key: [e.to_dict() for e in entries] for key, entries in timesheets.items()
        }
        self._write(doc)

    def get_week_entries(self, week_key: str) -> list[Entry]:
        return self.load_all_timesheets().get(week_key, [])

    def has_week(self, week_key: str) -> bool:
        return week_key in (self._read().get(_TIMESHEETS) or {})

    def save_week_entries(self, week_key: str, entries: list[Entry]) -> None:
        timesheets = self.load_all_timesheets()
        timesheets[week_key] = list(entries)
        self.save_all_timesheets(timesheets)

    def delete_week(self, week_key: str) -> bool:
        timesheets = self.load_all_timesheets()
        if week_key not in timesheets:
            return False
        del timesheets[week_key]
        self.save_all_timesheets(timesheets)
        return True

    # --- Basic info ---

    def load_basic_info(self) -> BasicInfo | None:
        info = BasicInfo.from_dict(self._read().get(_BASIC_INFO))
        if info is None or not info.employee_name:
            return None
        return info

    def save_basic_info(self, info: BasicInfo) -> None:
        doc = self._read()
        doc[_BASIC_INFO] = info.to_dict()
        self._write(doc)

    # --- Internal helpers ---

    def _read(self) -> dict[str, Any]:
        if self.path is None:
            return copy.deepcopy(self._memory)
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to read timesheet store %s: %s", self.path, exc)
            raise StorageFault(f"Could not read timesheet data from {self.path}.") from exc
        return data if isinstance(data, dict) else {}

    def _write(self, doc: dict[str, Any]) -> None:
        if self.path is None:
            self._memory = copy.deepcopy(doc)
            return
        tmp_path = f"{self.path}.tmp"
        try:
            folder = os.path.dirname(self.path)
            if folder:
                os.makedirs(folder, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(doc, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.error("Failed to write timesheet store %s: %s", self.path, exc)
            raise StorageFault("Saving timesheet data failed; nothing was changed.") from exc


def _week_list(value: Any) -> list[dict[str, Any]]:
    # Weeks were once stored as {"entries": [...]} rather than a bare list.
    if isinstance(value, list):
        return [e for e in value if isinstance(e, dict)]
    if isinstance(value, dict) and isinstance(value.get("entries"), list):
        return [e for e in value["entries"] if isinstance(e, dict)]
    return []
