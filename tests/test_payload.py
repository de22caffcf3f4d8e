from datetime import datetime

from shiftsolve.data.models import Employee, Shift, normalize_employee_row
from shiftsolve.services.payload import build_payload, parse_availability, parse_list


def test_parse_list_is_defensive():
    assert parse_list(["a", " b ", None, ""]) == ["a", "b"]
    assert parse_list("[\"react\", \"sql\"]") == ["react", "sql"]
    assert parse_list("\"solo\"") == ["solo"]
    assert parse_list("{not json") == []
    assert parse_list("") == []
    assert parse_list(None) == []
    assert parse_list({"a": 1}) == []


def test_parse_availability_forms():
    assert parse_availability("[\"Mon\", \"Fri\"]") == ["Mon", "Fri"]
    assert parse_availability("Mon, Tue") == ["Mon", "Tue"]
    assert parse_availability("Full-time") == ["Full-time"]
    assert parse_availability(["Sat"]) == ["Sat"]
    assert parse_availability(None) == []


def test_malformed_skills_still_produce_an_entry():
    payload = build_payload(
        [{"Name": "Ben", "Skills": "[cashier,", "Preferences": "[\"NIGHT\"]", "work_percentages": 40}],
        [],
    )
    entry = payload["employees"][0]
    assert entry["name"] == "Ben"
    assert entry["skills"] == []
    assert entry["shiftPreferences"] == ["NIGHT"]
    assert entry["workPercentage"] == 40.0
    assert entry["unavailableDates"] == []
    assert entry["undesiredDates"] == []
    assert entry["desiredDates"] == []


def test_build_payload_from_models(employee_rows, shift_rows):
    employees = [normalize_employee_row(r) for r in employee_rows]
    shift = Shift(id="s1", start=datetime(2024, 6, 3, 9), end=datetime(2024, 6, 3, 13),
                  required_skill="cashier", location="Main Store")

    payload = build_payload(employees, [shift])

    assert [e["name"] for e in payload["employees"]] == ["Ann", "Ben"]
    assert payload["employees"][0]["skills"] == ["cashier"]
    assert payload["employees"][1]["skills"] == []
    assert payload["shifts"] == [{
        "id": "s1",
        "start": "2024-06-03T09:00:00",
        "end": "2024-06-03T13:00:00",
        "location": "Main Store",
        "requiredSkill": "cashier",
    }]


def test_build_payload_accepts_raw_shift_rows(shift_rows):
    payload = build_payload([], shift_rows)
    assert [s["id"] for s in payload["shifts"]] == ["s1", "s2"]
    assert payload["shifts"][1]["start"] == "2024-06-03T18:00:00"


def test_build_payload_does_not_mutate_inputs():
    employee = Employee(name="Ann", work_percentage=80, skills=["a"])
    build_payload([employee], [])
    assert employee.skills == ["a"]
