from datetime import date

from weekly_timesheet.backend.config import ProductModule, ProjectCode, ReferenceData
from weekly_timesheet.backend.dates import week_range_from_key
from weekly_timesheet.backend.forms import Entry, from_dict, validate
from weekly_timesheet.backend.parsers import parse_csv, parse_hours, parse_loose_date, pick_field


def _entry(**overrides):
    values = {
        "date": "2025-03-05",
        "task": "Spec review",
        "zone": "North",
        "activity_type": "Design",
        "regular_hours": 8.0,
    }
    values.update(overrides)
    return Entry(**values)


def test_from_dict_and_validate_ok():
    entry = from_dict(
        {
            "id": "abc",
            "date": "2025-03-05",
            "task": "Spec review",
            "zone": "North",
            "activityType": "Design",
            "regularHours": "7.5",
            "otHours": 1,
        }
    )
    assert isinstance(entry, Entry)
    assert entry.id == "abc"
    assert entry.start_date == entry.end_date == "2025-03-05"
    assert entry.ttl_hours == 8.5
    assert validate(entry) == []


def test_from_dict_reads_legacy_keys():
    entry = from_dict({"date": "2025-03-05", "project": "P-1", "name": "Alice", "regularHours": 8})
    assert entry.project_code == "P-1"
    assert entry.employee_name == "Alice"
    assert entry.id


def test_to_dict_uses_camel_case():
    data = _entry(project_code="P-1").to_dict()
    assert data["projectCode"] == "P-1"
    assert data["activityType"] == "Design"
    assert data["startDate"] == "2025-03-05"


def test_validate_requires_fields():
    problems = validate(Entry(date=""))
    assert any("Task is required" in p for p in problems)
    assert any("Zone is required" in p for p in problems)
    assert any("Activity type is required" in p for p in problems)
    assert any("Date is required" in p for p in problems)


def test_validate_hour_range_and_date_order():
    problems = validate(_entry(regular_hours=25, ot_hours=-1, start_date="2025-03-06", end_date="2025-03-05"))
    assert any("Regular hours must be between 0 and 24" in p for p in problems)
    assert any("OT hours must be between 0 and 24" in p for p in problems)
    assert any("End date cannot be earlier" in p for p in problems)


def test_validate_week_range_and_reference_data():
    week = week_range_from_key("2025-W10")
    assert validate(_entry(), week=week) == []
    assert any("outside the week" in p for p in validate(_entry(date="2025-03-12"), week=week))

    reference = ReferenceData(
        projects=[ProjectCode(zone="North", project="P-100", pm="Dana")],
        product_modules=[ProductModule(zone="South", module="Core")],
        activity_types=["Design", "Testing"],
    )
    assert validate(_entry(project_code="P-100"), reference=reference) == []
    problems = validate(_entry(zone="East", project_code="P-9", activity_type="Nap"), reference=reference)
    assert problems == ["Unknown zone: East", "Unknown project: P-9", "Unknown activity type: Nap"]
    assert reference.pm_for_project("p-100") == "Dana"
    assert [m.module for m in reference.product_modules_by_zone("South")] == ["Core"]
    assert reference.projects_by_zone("") == []


def test_parse_csv_handles_bom_quotes_and_blank_lines():
    text = '\ufeffName, Task ,Date\n"Doe, Jane","Say ""hi""",2025-03-05\n\n  \nBob\n'
    rows = parse_csv(text)
    assert rows == [
        {"Name": "Doe, Jane", "Task": 'Say "hi"', "Date": "2025-03-05"},
        {"Name": "Bob", "Task": "", "Date": ""},
    ]
    assert parse_csv("Name,Date") == []
    assert parse_csv("") == []


def test_parse_loose_date_formats():
    assert parse_loose_date("2025-03-05") == date(2025, 3, 5)
    assert parse_loose_date("2025/3/5") == date(2025, 3, 5)
    assert parse_loose_date("2025.03.05") == date(2025, 3, 5)
    assert parse_loose_date("2025-03-05T08:00:00") == date(2025, 3, 5)
    assert parse_loose_date("03/05/2025") == date(2025, 3, 5)
    assert parse_loose_date("20250305") == date(2025, 3, 5)


def test_parse_loose_date_rejects_garbage():
    assert parse_loose_date("not-a-date") is None
    assert parse_loose_date("1900-01-01") is None
    assert parse_loose_date("2025-02-30") is None
    assert parse_loose_date("") is None
    assert parse_loose_date(None) is None


def test_parse_hours_is_lenient():
    assert parse_hours("7.5") == 7.5
    assert parse_hours("8h") == 8.0
    assert parse_hours(".5") == 0.5
    assert parse_hours("") == 0.0
    assert parse_hours("n/a") == 0.0
    assert parse_hours("-3") == 0.0
    assert parse_hours(6) == 6.0


def test_pick_field_precedence():
    row = {"Project": "", "projectCode": "P-2", "project": "P-3", "專案": "P-4"}
    assert pick_field(row, "projectCode") == "P-2"
    assert pick_field({"專案": " P-4 "}, "projectCode") == "P-4"
    assert pick_field({}, "task") == ""
