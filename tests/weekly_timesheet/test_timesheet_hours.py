from weekly_timesheet.backend.forms import Entry
from weekly_timesheet.backend.normalize import needs_normalization, normalize_for_export
from weekly_timesheet.backend.utils import classify_week


def _entries(hours, ot=None):
    ot = ot or [0.0] * len(hours)
    return [
        Entry(date="2025-03-03", regular_hours=h, ot_hours=o, ttl_hours=h + o)
        for h, o in zip(hours, ot)
    ]


def _regular(entries):
    return [e.regular_hours for e in entries]


def test_at_or_under_cap_is_left_alone():
    out = normalize_for_export(_entries([13.33, 13.33, 13.34]))
    assert _regular(out) == [13.33, 13.33, 13.34]
    assert not any(e.is_normalized for e in out)
    assert all(e.original_hours is None for e in out)


def test_even_ratio_needs_no_remainder():
    out = normalize_for_export(_entries([20, 20, 10], ot=[2, 0, 0]))
    assert _regular(out) == [16.0, 16.0, 8.0]
    assert [e.ttl_hours for e in out] == [18.0, 16.0, 8.0]
    assert [e.original_hours for e in out] == [20.0, 20.0, 10.0]
    assert all(e.is_normalized for e in out)


def test_last_entry_absorbs_rounding_remainder():
    out = normalize_for_export(_entries([13.34, 13.34, 13.34], ot=[0, 0, 1.5]))
    assert _regular(out) == [13.33, 13.33, 13.34]
    assert round(sum(_regular(out)), 2) == 40.0
    assert out[-1].ttl_hours == 14.84


def test_sum_is_exactly_the_cap():
    out = normalize_for_export(_entries([9.99, 17.5, 22.31, 3.07, 0.01, 6.66]))
    assert round(sum(_regular(out)), 2) == 40.0


def test_custom_cap():
    out = normalize_for_export(_entries([30, 15]), cap=37.5)
    assert _regular(out) == [25.0, 12.5]


def test_normalizing_twice_changes_nothing():
    once = normalize_for_export(_entries([13.34, 13.34, 13.34, 7.77]))
    twice = normalize_for_export(once)
    assert _regular(twice) == _regular(once)
    assert [e.ttl_hours for e in twice] == [e.ttl_hours for e in once]
    assert [e.is_normalized for e in twice] == [True] * 4
    assert [e.original_hours for e in twice] == [e.original_hours for e in once]


def test_stored_entries_are_not_mutated():
    entries = _entries([25, 25])
    out = normalize_for_export(entries)
    assert _regular(entries) == [25, 25]
    assert _regular(out) == [20.0, 20.0]
    assert out[0].id == entries[0].id
    assert "isNormalized" not in out[0].to_dict()


def test_empty_and_missing_hours():
    assert normalize_for_export([]) == []
    entry = Entry(date="2025-03-03")
    assert not needs_normalization([entry])
    assert _regular(normalize_for_export([entry])) == [0.0]


def test_classify_week_against_cap():
    assert classify_week(40.0, cap=40.0) is None
    assert classify_week(32.5, cap=40.0) == "Incomplete — 7.5h short of 40h"
    assert classify_week(41.25, cap=40.0) == "Over cap — +1.25h over 40h"
