"""Scale a week's regular hours down to the weekly cap for export.

When the regular hours of a week add up to more than the cap, every entry is
scaled by ``cap / total`` and rounded to cents. Rounding drift is pushed onto
the last entry so the week sums to the cap exactly. Stored entries are never
touched; the result is a list of `NormalizedEntry` copies.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal

from .forms import Entry, NormalizedEntry
from .utils import DEFAULT_WEEKLY_CAP, round_cents, to_decimal

logger = logging.getLogger(__name__)


def total_regular_hours(entries: Iterable[Entry]) -> Decimal:
    return sum((to_decimal(e.regular_hours) for e in entries), Decimal(0))


def needs_normalization(entries: Sequence[Entry], cap: float = DEFAULT_WEEKLY_CAP) -> bool:
    return total_regular_hours(entries) > to_decimal(cap)


def normalize_for_export(
    entries: Sequence[Entry], cap: float = DEFAULT_WEEKLY_CAP
) -> list[NormalizedEntry]:
    """Return export copies of ``entries`` whose regular hours sum to at most ``cap``."""
    limit = to_decimal(cap)
    total = total_regular_hours(entries)
    copies = [NormalizedEntry.from_entry(e) for e in entries]
    if total <= limit:
        return copies

    ratio = limit / total
    logger.info("Normalizing %d entries: %s regular hours -> %s (ratio %.6f)", len(copies), total, limit, ratio)
    normalized_sum = Decimal(0)
    for entry in copies:
        original = to_decimal(entry.regular_hours)
        new_hours = round_cents(original * ratio)
        normalized_sum += new_hours
        entry.original_hours = float(original)
        entry.is_normalized = True
        _set_regular(entry, new_hours)

    difference = limit - normalized_sum
    if difference and copies:
        last = copies[-1]
        logger.debug("Rounding remainder %s absorbed by entry %s", difference, last.id)
        _set_regular(last, round_cents(to_decimal(last.regular_hours) + difference))
    return copies


def _set_regular(entry: NormalizedEntry, hours: Decimal) -> None:
    entry.regular_hours = float(hours)
    entry.ttl_hours = float(round_cents(hours + to_decimal(entry.ot_hours)))
