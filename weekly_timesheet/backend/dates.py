"""Week keys, ISO week numbers and week date ranges.

A week key looks like ``2025-W10``: the ISO year, a literal ``W`` and a
two-digit ISO week number. Weeks run Monday to Sunday.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date as _date, datetime, timedelta, tzinfo as _tzinfo
from zoneinfo import ZoneInfo

from .errors import ParseError

_WEEK_KEY_RE = re.compile(r"(\d{4})-W(\d{1,2})")


@dataclass(frozen=True)
class WeekRange:
    start: _date
    end: _date

    def __contains__(self, day: object) -> bool:
        return isinstance(day, _date) and self.start <= day <= self.end

    def label(self) -> str:
        return f"{format_date(self.start)} ~ {format_date(self.end)}"


def format_date(day: _date) -> str:
    return day.strftime("%Y-%m-%d")


def week_number(day: _date) -> int:
    """Return the ISO week number (1..53) of ``day``."""
    return day.isocalendar()[1]


def week_key_for(day: _date) -> str:
    """Return the week key of ``day`` using its ISO year."""
    iso = day.isocalendar()
    return make_week_key(iso[0], iso[1])


def weeks_in_year(year: int) -> int:
    """Return 52 or 53, the number of ISO weeks in ``year``."""
    return _date(year, 12, 28).isocalendar()[1]


def make_week_key(year: int, week: int) -> str:
    return f"{year:04d}-W{week:02d}"


def parse_week_key(week_key: str) -> tuple[int, int]:
    """Split a week key into ``(year, week)``.

    Raises:
        ParseError: if the key is not ``YYYY-Wnn`` with ``nn`` in 1..53,
            or names week 53 of a year that has only 52 ISO weeks.
    """
    m = _WEEK_KEY_RE.fullmatch((week_key or "").strip().upper())
    if not m:
        raise ParseError(f"Invalid week key: {week_key!r} (expected YYYY-Wnn)")
    year, week = int(m.group(1)), int(m.group(2))
    if year < 1:
        raise ParseError(f"Invalid year in {week_key!r}")
    if not 1 <= week <= 53:
        raise ParseError(f"Invalid week number in {week_key!r}: must be 1-53")
    if week > weeks_in_year(year):
        raise ParseError(f"Invalid week key: {year} has no week {week}")
    return year, week


def is_valid_week_key(week_key: str) -> bool:
    try:
        parse_week_key(week_key)
    except ParseError:
        return False
    return True


def week_range(week: int, year: int) -> WeekRange:
    """Return the Monday..Sunday span of ``week`` in ISO ``year``.

    Counted from the Monday of ISO week 1. Week 53 exists only in years with
    53 ISO weeks, so no two keys share a range.
    """
    if not 1 <= week <= weeks_in_year(year):
        raise ParseError(f"Invalid week number: {week} (year {year} has {weeks_in_year(year)} weeks)")
    first_monday = _date.fromisocalendar(year, 1, 1)
    start = first_monday + timedelta(weeks=week - 1)
    return WeekRange(start=start, end=start + timedelta(days=6))


def week_range_from_key(week_key: str) -> WeekRange:
    year, week = parse_week_key(week_key)
    return week_range(week, year)


def day_offset_between(source_key: str, target_key: str) -> int:
    """Days from the start of ``source_key`` to the start of ``target_key``."""
    source = week_range_from_key(source_key)
    target = week_range_from_key(target_key)
    return (target.start - source.start).days


def today_in(timezone: str | None = None) -> _date:
    tz: _tzinfo | None = None
    if timezone:
        try:
            tz = ZoneInfo(timezone)
        except Exception:
            tz = None
    if tz is None:
        tz = datetime.now().astimezone().tzinfo
    return datetime.now(tz).date()


def this_week_key(today: _date | None = None, *, timezone: str | None = None) -> str:
    return week_key_for(today or today_in(timezone))


def last_week_key(today: _date | None = None, *, timezone: str | None = None) -> str:
    return week_key_for((today or today_in(timezone)) - timedelta(days=7))
