from __future__ import annotations

import csv
import logging
import os
from dataclasses import dataclass, field

from .parsers import parse_csv
from .utils import get_weekly_cap

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = os.path.join("~", ".weekly_timesheet", "store.json")


@dataclass
class ProjectCode:
    zone: str
    project: str
    pm: str = ""


@dataclass
class ProductModule:
    zone: str
    module: str


@dataclass
class ReferenceData:
    """Zones, projects, product modules and activity types used to check entries."""

    projects: list[ProjectCode] = field(default_factory=list)
    product_modules: list[ProductModule] = field(default_factory=list)
    activity_types: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.projects or self.product_modules or self.activity_types)

    def zones(self) -> list[str]:
        seen: list[str] = []
        for z in [p.zone for p in self.projects] + [m.zone for m in self.product_modules]:
            if z and z not in seen:
                seen.append(z)
        return seen

    def projects_by_zone(self, zone: str) -> list[ProjectCode]:
        if not zone:
            return []
        return [p for p in self.projects if p.zone == zone]

    def find_project(self, value: str) -> ProjectCode | None:
        v = (value or "").strip().lower()
        for p in self.projects:
            if p.project.strip().lower() == v:
                return p
        return None

    def pm_for_project(self, project: str) -> str:
        found = self.find_project(project)
        return found.pm if found else ""

    def product_modules_by_zone(self, zone: str) -> list[ProductModule]:
        if not zone:
            return []
        return [m for m in self.product_modules if m.zone == zone]

    def activity_type_exists(self, value: str) -> bool:
        v = (value or "").strip().lower()
        return any(a.strip().lower() == v for a in self.activity_types)


def _read_rows(path: str) -> list[dict[str, str]]:
    if not os.path.isfile(path):
        return []
    try:
        with open(path, encoding="utf-8-sig") as f:
            return parse_csv(f.read())
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        logger.warning("Skipping reference file %s: %s", path, exc)
        return []


def load_reference_data(directory: str) -> ReferenceData:
    """Load projectcode.csv, productcode.csv and activityType.csv from ``directory``.

    Missing files leave the matching list empty.
    """
    projects = [
        ProjectCode(zone=r.get("Zone", ""), project=r.get("Project", ""), pm=r.get("PM", ""))
        for r in _read_rows(os.path.join(directory, "projectcode.csv"))
        if r.get("Project")
    ]
    modules = [
        ProductModule(zone=r.get("Zone", ""), module=r.get("Product Module", ""))
        for r in _read_rows(os.path.join(directory, "productcode.csv"))
        if r.get("Product Module")
    ]
    activities = [
        r["Activity Type"]
        for r in _read_rows(os.path.join(directory, "activityType.csv"))
        if r.get("Activity Type")
    ]
    logger.debug(
        "Reference data: %d projects, %d modules, %d activities",
        len(projects),
        len(modules),
        len(activities),
    )
    return ReferenceData(projects=projects, product_modules=modules, activity_types=activities)


@dataclass
class Settings:
    store_path: str
    weekly_cap: float = 40.0
    timezone: str | None = None
    export_dir: str = "."
    reference: ReferenceData = field(default_factory=ReferenceData)


def load_settings() -> Settings:
    """Build settings from TIMESHEET_* environment variables."""
    store_path = os.path.expanduser(os.environ.get("TIMESHEET_STORE_PATH") or DEFAULT_STORE_PATH)
    reference_dir = os.environ.get("TIMESHEET_REFERENCE_DIR")
    return Settings(
        store_path=store_path,
        weekly_cap=get_weekly_cap(),
        timezone=os.environ.get("TIMESHEET_TZ") or None,
        export_dir=os.environ.get("TIMESHEET_EXPORT_DIR") or ".",
        reference=load_reference_data(reference_dir) if reference_dir else ReferenceData(),
    )
