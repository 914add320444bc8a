from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from dotenv import load_dotenv
from typing_extensions import NotRequired, TypedDict

from agents import Agent, ModelSettings, RunContextWrapper, function_tool, run_demo_loop

from .backend.config import Settings, load_settings
from .backend.dates import week_range_from_key
from .backend.errors import TimesheetError
from .backend.exporters.csv import export_week, write_csv_file
from .backend.forms import BasicInfo, Entry, validate as validate_entry
from .backend.importer import Aborted, Confirm, ConfirmPrompt, ImportMerger
from .backend.parsers import resolve_week_phrase
from .backend.storage import TimesheetStore
from .backend.weeks import (
    copy_week as copy_week_entries,
    create_week as create_empty_week,
    delete_week as delete_stored_week,
    list_week_summaries,
    normalize_week_key,
    remove_entry,
    save_entry,
)

logger = logging.getLogger(__name__)


@dataclass
class TimesheetContext:
    """Per-session context holding the store and settings."""

    store: TimesheetStore
    settings: Settings
    messages: list[str] = field(default_factory=list)


def _approval_gate(approvals: list[str] | None, asked: list[ConfirmPrompt]) -> Confirm:
    """Answer prompts from the kinds the user already approved; record the rest."""
    granted = set(approvals or [])

    async def confirm(prompt: ConfirmPrompt) -> bool:
        if prompt.kind in granted:
            return True
        asked.append(prompt)
        return False

    return confirm


def _needs_confirmation(prompt: ConfirmPrompt) -> dict[str, Any]:
    return {"status": "needs_confirmation", "kind": prompt.kind, "message": prompt.message}


@function_tool
def list_weeks(ctx: RunContextWrapper[TimesheetContext]) -> dict[str, Any]:
    """List stored weeks (newest first) with entry counts and hour totals."""
    cfg = ctx.context.settings
    try:
        summaries = list_week_summaries(ctx.context.store, cfg.weekly_cap)
    except TimesheetError as exc:
        return {"status": "error", "problems": [exc.message]}
    info = ctx.context.store.load_basic_info()
    return {
        "status": "ok" if summaries else "empty",
        "basic_info": info.to_dict() if info else None,
        "weeks": [s.to_dict() for s in summaries],
    }


@function_tool
def resolve_week(
    ctx: RunContextWrapper[TimesheetContext], phrase: str, base_date: str | None = None
) -> str:
    """Resolve a week phrase to a week key (YYYY-Wnn).

    Args:
        phrase: "this week", "last week", "next week", a week key like "2025-W10", or any date.
        base_date: Optional YYYY-MM-DD used as an anchor for relative phrases (tests/reproducibility).
    Returns:
        Week key, or empty string if not understood.
    """
    return resolve_week_phrase(phrase, timezone=ctx.context.settings.timezone, base_date=base_date)


@function_tool
def set_basic_info(
    ctx: RunContextWrapper[TimesheetContext], employee_name: str, employee_type: str
) -> dict[str, Any]:
    """Save the employee identity shared by every week.

    Args:
        employee_name: Full name as it should appear on exports.
        employee_type: Internal or outsource classification.
    """
    problems: list[str] = []
    if not employee_name.strip():
        problems.append("Employee name is required.")
    if not employee_type.strip():
        problems.append("Employee type is required.")
    if problems:
        return {"status": "error", "problems": problems}
    info = BasicInfo(employee_name=employee_name.strip(), employee_type=employee_type.strip())
    try:
        ctx.context.store.save_basic_info(info)
    except TimesheetError as exc:
        return {"status": "error", "problems": [exc.message]}
    return {"status": "ok", "basic_info": info.to_dict()}


class EntryDraft(TypedDict):
    """Fields of a single timesheet entry.

    Fields:
        date: Work date in YYYY-MM-DD.
        task: Short task description.
        zone: Zone name.
        activity_type: Activity type.
        regular_hours: Regular hours as a decimal.
        ot_hours: Optional overtime hours.
        project: Optional project code.
        product_module: Optional product module.
        start_date: Optional YYYY-MM-DD; defaults to date.
        end_date: Optional YYYY-MM-DD; defaults to date.
        comments: Optional free text.
        entry_id: Optional id of an existing entry to replace.
    """

    date: str
    task: str
    zone: str
    activity_type: str
    regular_hours: float
    ot_hours: NotRequired[float]
    project: NotRequired[str]
    product_module: NotRequired[str]
    start_date: NotRequired[str]
    end_date: NotRequired[str]
    comments: NotRequired[str]
    entry_id: NotRequired[str]


def _entry_from_draft(draft: EntryDraft, info: BasicInfo | None, settings: Settings) -> Entry:
    regular = float(draft.get("regular_hours") or 0)
    ot = float(draft.get("ot_hours") or 0)
    project = draft.get("project") or ""
    values: dict[str, Any] = {
        "date": draft.get("date", ""),
        "start_date": draft.get("start_date") or "",
        "end_date": draft.get("end_date") or "",
        "task": draft.get("task", ""),
        "zone": draft.get("zone", ""),
        "project_code": project,
        "product_module": draft.get("product_module") or "",
        "activity_type": draft.get("activity_type", ""),
        "regular_hours": regular,
        "ot_hours": ot,
        "ttl_hours": round(regular + ot, 2),
        "employee_name": info.employee_name if info else "",
        "internal_or_outsource": info.employee_type if info else "",
        "comments": draft.get("comments") or "",
        "pm": settings.reference.pm_for_project(project),
    }
    if draft.get("entry_id"):
        values["id"] = draft["entry_id"]
    return Entry(**values)


@function_tool
def submit_entry(
    ctx: RunContextWrapper[TimesheetContext], week: str, entry: EntryDraft
) -> dict[str, Any]:
    """Add or replace one entry in a week once all required fields are known.

    Args:
        week: Week key (YYYY-Wnn).
        entry: The entry fields; pass entry_id to replace an existing entry.
    """
    store = ctx.context.store
    info = store.load_basic_info()
    if info is None:
        return {"status": "error", "problems": ["Set the basic info (name and type) first."]}
    try:
        key = normalize_week_key(week)
        candidate = _entry_from_draft(entry, info, ctx.context.settings)
        problems = validate_entry(
            candidate, week=week_range_from_key(key), reference=ctx.context.settings.reference
        )
        if problems:
            return {"status": "error", "problems": problems}
        entries = save_entry(store, key, candidate)
    except TimesheetError as exc:
        return {"status": "error", "problems": [exc.message]}
    return {"status": "ok", "count": len(entries), "entry": candidate.to_dict()}


@function_tool
def delete_entry(ctx: RunContextWrapper[TimesheetContext], week: str, entry_id: str) -> dict[str, Any]:
    """Delete one entry from a week by its id."""
    try:
        removed = remove_entry(ctx.context.store, week, entry_id)
    except TimesheetError as exc:
        return {"status": "error", "problems": [exc.message]}
    return {"status": "ok" if removed else "not_found"}


@function_tool
def create_week(ctx: RunContextWrapper[TimesheetContext], week: str) -> dict[str, Any]:
    """Create an empty timesheet for a week key (YYYY-Wnn)."""
    try:
        key = create_empty_week(ctx.context.store, week)
    except TimesheetError as exc:
        return {"status": "error", "problems": [exc.message]}
    return {"status": "ok", "week": key, "range": week_range_from_key(key).label()}


@function_tool
def delete_week(
    ctx: RunContextWrapper[TimesheetContext], week: str, confirmed: bool = False
) -> dict[str, Any]:
    """Delete a whole week. Ask the user first, then call again with confirmed=true."""
    if not confirmed:
        return {
            "status": "needs_confirmation",
            "kind": "delete",
            "message": f"Delete the timesheet for {week}? This cannot be undone.",
        }
    try:
        deleted = delete_stored_week(ctx.context.store, week)
    except TimesheetError as exc:
        return {"status": "error", "problems": [exc.message]}
    return {"status": "ok" if deleted else "not_found"}


@function_tool
async def import_csv(
    ctx: RunContextWrapper[TimesheetContext],
    path: str,
    week: str,
    approvals: list[str] | None = None,
) -> dict[str, Any]:
    """Import a timesheet CSV file into a target week, moving its dates onto that week.

    Args:
        path: Path to the CSV file.
        week: Target week key (YYYY-Wnn).
        approvals: Prompt kinds the user has already agreed to
            ("basic_info", "name_mismatch", "merge"). Leave empty on the first call.
    """
    try:
        with open(os.path.expanduser(path), encoding="utf-8-sig") as f:
            raw_text = f.read()
    except (OSError, UnicodeDecodeError) as exc:
        return {"status": "error", "problems": [f"Could not read {path}: {exc}"]}

    asked: list[ConfirmPrompt] = []
    messages: list[str] = []
    merger = ImportMerger(ctx.context.store, _approval_gate(approvals, asked), notify=messages.append)
    result = await merger.run_text(raw_text, week)
    ctx.context.messages.extend(messages)
    if isinstance(result, Aborted):
        if result.cancelled and asked:
            return _needs_confirmation(asked[-1])
        return {"status": "error", "problems": [result.reason, *result.failures]}
    return {
        "status": "partial" if result.failures else "ok",
        "week": result.target_week_key,
        "source_week": result.source_week_key,
        "imported": result.imported_count,
        "failures": result.failures,
        "message": result.message(),
    }


@function_tool
def export_week_csv(
    ctx: RunContextWrapper[TimesheetContext], week: str, path: str | None = None
) -> dict[str, Any]:
    """Export a week as CSV, capping regular hours at the weekly limit, and save it to a file.

    Args:
        week: Week key (YYYY-Wnn).
        path: Optional output path; defaults to the export directory and timesheet_<week>.csv.
    """
    cfg = ctx.context.settings
    try:
        key = normalize_week_key(week)
        result = export_week(ctx.context.store, key, cap=cfg.weekly_cap)
    except TimesheetError as exc:
        return {"status": "error", "problems": [exc.message]}
    if not result.entry_count:
        return {"status": "empty", "week": key}
    target = path or os.path.join(cfg.export_dir, result.filename)
    try:
        write_csv_file(result.csv_text, target)
    except OSError as exc:
        logger.error("Export write failed for %s: %s", target, exc)
        return {"status": "error", "problems": [f"Could not write {target}."], "csv": result.csv_text}
    return {
        "status": "ok",
        "path": target,
        "entries": result.entry_count,
        "normalized": result.normalized,
        "csv": result.csv_text,
    }


@function_tool
async def copy_week(
    ctx: RunContextWrapper[TimesheetContext],
    source_week: str,
    target_week: str,
    approvals: list[str] | None = None,
) -> dict[str, Any]:
    """Copy every entry of one week onto another week, shifting dates to match.

    Args:
        source_week: Week key to copy from.
        target_week: Week key to copy to.
        approvals: Include "overwrite" once the user agrees to replace an existing target week.
    """
    asked: list[ConfirmPrompt] = []
    try:
        copied = await copy_week_entries(
            ctx.context.store, source_week, target_week, confirm=_approval_gate(approvals, asked)
        )
    except TimesheetError as exc:
        if asked:
            return _needs_confirmation(asked[-1])
        return {"status": "error", "problems": [exc.message]}
    return {"status": "ok", "copied": len(copied), "target_week": normalize_week_key(target_week)}


def build_agent(model_name: str) -> Agent[TimesheetContext]:
    instructions = (
        "You are a careful assistant for a personal weekly timesheet. "
        "Weeks are identified by keys like 2025-W10 (ISO weeks, Monday to Sunday). "
        "When the user mentions a week in words ('this week', 'last week', a date), use resolve_week to get the key; do not guess. "
        "Use list_weeks to show stored weeks and their totals. "
        "Before adding entries make sure the basic info (employee name and type) is set; use set_basic_info if needed. "
        "To add an entry gather date, task, zone, activity type and regular hours (OT hours optional), then call submit_entry. "
        "To import a CSV call import_csv with the file path and target week. If a tool returns status needs_confirmation, "
        "show the message to the user verbatim and ask yes/no. If they agree, call the same tool again adding the returned kind "
        "to approvals (keep earlier approvals). If they decline, stop and say nothing was imported. "
        "copy_week works the same way with the 'overwrite' approval; delete_week takes confirmed=true after the user agrees. "
        "Use export_week_csv to export; mention when regular hours were normalized to the weekly cap. "
        "Report skipped rows from imports exactly as returned. "
        "Be concise and ask one question at a time."
    )

    return Agent[TimesheetContext](
        name="Weekly Timesheet Agent",
        instructions=instructions,
        tools=[
            list_weeks,
            resolve_week,
            set_basic_info,
            submit_entry,
            delete_entry,
            create_week,
            delete_week,
            import_csv,
            export_week_csv,
            copy_week,
        ],
        model=model_name,
        model_settings=ModelSettings(),
    )


async def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("TIMESHEET_LOG_LEVEL", "WARNING").upper(),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )
    # Model selection (default keeps compatibility with SDK defaults if unset)
    model = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

    # Basic check for API key; the SDK also checks env during first call
    if not os.environ.get("OPENAI_API_KEY"):
        print("Warning: OPENAI_API_KEY is not set. Set it in your shell or a .env file.")

    settings = load_settings()
    agent = build_agent(model)
    print(f"Weekly Timesheet Agent ready (store: {settings.store_path}). Ctrl+C to exit.")

    context = TimesheetContext(store=TimesheetStore(settings.store_path), settings=settings)
    await run_demo_loop(agent, stream=True, context=context)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
