import csv
import io

from weekly_timesheet.backend.exporters.csv import (
    EXPORT_HEADERS,
    export_week,
    generate_csv_content,
    render_csv,
    write_csv_file,
)
from weekly_timesheet.backend.forms import BasicInfo, Entry
from weekly_timesheet.backend.storage import TimesheetStore


def _rows(text):
    return list(csv.DictReader(io.StringIO(text)))


def test_render_csv_basic():
    rows = [{"Name": "Alice", "Date": "2025-09-01", "Regular Hours": 8}]
    fields = ["Name", "Date", "Regular Hours"]
    out = render_csv(rows, fields)
    assert out.startswith("Name,Date,Regular Hours\n")
    assert "Alice,2025-09-01,8" in out


def test_render_csv_escaping_commas_and_quotes():
    rows = [
        {"Name": "A,B", "Task": "plan"},
        {"Name": 'Bob "The Builder"', "Task": "build"},
    ]
    out = render_csv(rows, ["Name", "Task"])
    # CSV module quotes fields containing commas or quotes.
    assert '"A,B"' in out
    assert '"Bob ""The Builder"""' in out


def test_render_csv_unknown_keys_ignored():
    rows = [{"Name": "Alice", "extra": 123}]
    out = render_csv(rows, ["Name"])
    assert "123" not in out


def test_export_columns_and_identity_from_basic_info():
    entry = Entry(
        date="2025-03-05",
        task="Spec review",
        zone="North",
        project_code="P-100",
        activity_type="Design",
        regular_hours=7.5,
        ot_hours=1.0,
        ttl_hours=8.5,
        employee_name="Old Name",
        pm="Dana",
    )
    text = generate_csv_content([entry], BasicInfo("Alice", "Internal"))
    assert text.splitlines()[0] == ",".join(EXPORT_HEADERS)
    (row,) = _rows(text)
    assert row["Name"] == "Alice"
    assert row["InternalOrOutsource"] == "Internal"
    assert (row["Regular Hours"], row["OT Hours"], row["TTL_Hours"]) == ("7.5", "1", "8.5")
    assert (row["Date"], row["Start Date"], row["End Date"]) == ("2025-03-05",) * 3
    assert row["PM"] == "Dana"


def test_export_normalizes_over_cap_without_touching_store():
    store = TimesheetStore()
    store.save_basic_info(BasicInfo("Alice", "Internal"))
    entries = [
        Entry(date="2025-03-03", task="a", regular_hours=20, ttl_hours=20),
        Entry(date="2025-03-04", task="b", regular_hours=20, ttl_hours=20),
        Entry(date="2025-03-05", task="c", regular_hours=10, ttl_hours=10),
    ]
    store.save_week_entries("2025-W10", entries)

    result = export_week(store, "2025-W10")
    assert result.normalized
    assert result.filename == "timesheet_2025-W10.csv"
    assert result.entry_count == 3
    assert [r["Regular Hours"] for r in _rows(result.csv_text)] == ["16", "16", "8"]
    assert [e.regular_hours for e in store.get_week_entries("2025-W10")] == [20.0, 20.0, 10.0]


def test_export_under_cap_is_verbatim():
    store = TimesheetStore()
    store.save_week_entries("2025-W10", [Entry(date="2025-03-03", regular_hours=13.33, ttl_hours=13.33)])
    result = export_week(store, "2025-W10")
    assert not result.normalized
    assert _rows(result.csv_text)[0]["Regular Hours"] == "13.33"


def test_write_csv_file_adds_bom(tmp_path):
    path = tmp_path / "out" / "timesheet_2025-W10.csv"
    write_csv_file("Name\n王小明\n", str(path))
    raw = path.read_bytes()
    assert raw.startswith(b"\xef\xbb\xbf")
    assert raw.decode("utf-8-sig") == "Name\n王小明\n"
