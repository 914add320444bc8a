from datetime import date

import pytest

from weekly_timesheet.backend.aligner import align_rows, detect_source_week, shift_iso_date
from weekly_timesheet.backend.errors import ParseError


def _weekday(iso: str) -> int:
    return date.fromisoformat(iso).weekday()


def test_wednesday_moves_to_wednesday_of_target_week():
    result = align_rows([{"Date": "2025-03-05"}], "2025-W20")
    assert result.source_week_key == "2025-W10"
    assert result.day_offset == 70
    row = result.rows[0]
    assert (row.date, row.start_date, row.end_date) == ("2025-05-14", "2025-05-14", "2025-05-14")


def test_month_end_source_into_week_spanning_two_months():
    # 2025-W05 is Jan 27 - Feb 2; 2025-W22 is May 26 - Jun 1.
    rows = [{"Date": "2025-01-31", "Start Date": "2025-01-31", "End Date": "2025-02-02"}]
    result = align_rows(rows, "2025-W22")
    row = result.rows[0]
    assert (row.date, row.start_date, row.end_date) == ("2025-05-30", "2025-05-30", "2025-06-01")
    assert _weekday(row.date) == 4
    assert _weekday(row.end_date) == 6


def test_year_boundary_uses_iso_week_year():
    result = align_rows([{"Date": "2024-12-31"}], "2025-W02")
    assert result.source_week_key == "2025-W01"
    assert result.rows[0].date == "2025-01-07"


def test_same_week_passes_dates_through():
    result = align_rows([{"date": "2025/03/04", "endDate": "2025.03.06"}], "2025-W10")
    assert result.day_offset is None
    assert not result.shifted
    row = result.rows[0]
    assert (row.date, row.start_date, row.end_date) == ("2025-03-04", "2025-03-04", "2025-03-06")


def test_one_offset_for_the_whole_batch():
    rows = [{"Date": "2025-03-03"}, {"Date": "2025-03-12"}]
    result = align_rows(rows, "2025-W11")
    assert [r.date for r in result.rows] == ["2025-03-10", "2025-03-19"]


def test_unreadable_primary_date_is_reported_with_row_number():
    rows = [{"Date": "2025-03-05"}, {"Date": "not-a-date"}, {"日期": "2025-03-07"}]
    result = align_rows(rows, "2025-W20")
    assert [r.row_number for r in result.rows] == [1, 3]
    assert [r.date for r in result.rows] == ["2025-05-14", "2025-05-16"]
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.row_number == 2
    assert failure.value == "not-a-date"
    assert str(failure).startswith("Row 2:")


def test_unreadable_secondary_dates_fall_back_to_primary():
    rows = [{"Date": "2025-03-05", "Start Date": "soon", "End Date": ""}]
    row = align_rows(rows, "2025-W20").rows[0]
    assert row.start_date == row.end_date == "2025-05-14"


def test_source_week_comes_from_first_readable_row():
    rows = [{"Date": ""}, {"Date": "1899-01-01"}, {"Date": "3/12/2025"}, {"Date": "2025-01-01"}]
    assert detect_source_week(rows) == "2025-W11"


def test_no_readable_dates_skips_alignment_and_rejects_rows():
    result = align_rows([{"Date": "tbd"}, {"Task": "x"}], "2025-W20")
    assert result.source_week_key is None
    assert result.rows == []
    assert [f.row_number for f in result.failures] == [1, 2]


def test_bad_target_week_key():
    with pytest.raises(ParseError):
        align_rows([{"Date": "2025-03-05"}], "2025-20")


def test_shift_iso_date_keeps_unreadable_values():
    assert shift_iso_date("2025-02-27", 7) == "2025-03-06"
    assert shift_iso_date("", 7) == ""
