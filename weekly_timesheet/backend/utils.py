from __future__ import annotations

import os
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

DEFAULT_WEEKLY_CAP = 40.0
MAX_DAILY_HOURS = 24.0

_CENT = Decimal("0.01")


def get_weekly_cap() -> float:
    """Return the configured weekly regular-hours cap (default 40.0)."""
    try:
        val = float(os.environ.get("TIMESHEET_WEEKLY_CAP", "40") or 40)
        return val if val > 0 else DEFAULT_WEEKLY_CAP
    except Exception:
        return DEFAULT_WEEKLY_CAP


def to_decimal(value: object) -> Decimal:
    """Coerce an hour value to Decimal; missing or non-numeric becomes 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    return d if d.is_finite() else Decimal(0)


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def round_hours(value: object) -> float:
    """Round to 2 decimals, half away from zero."""
    return float(round_cents(to_decimal(value)))


def classify_week(total_hours: float, cap: float | None = None) -> str | None:
    """Return a short status note for a week's total against the cap.

    - If total == cap: returns None.
    - If total < cap: "Incomplete — Xh short of {cap}h".
    - If total > cap: "Over cap — +Xh over {cap}h".
    """
    full = cap if cap is not None else get_weekly_cap()
    delta = round(total_hours - full, 2)
    if abs(delta) < 1e-9:
        return None
    if delta < 0:
        return f"Incomplete — {format_hours(-delta)}h short of {full:g}h"
    return f"Over cap — +{format_hours(delta)}h over {full:g}h"


def format_hours(x: float) -> str:
    s = f"{x:.2f}"
    if s.endswith(".00"):
        return s[:-3]
    if s.endswith("0"):
        return s[:-1]
    return s
