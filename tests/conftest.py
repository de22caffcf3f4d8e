import pytest

from shiftsolve.data.store import CalendarState

from fakes import FakeSolver


@pytest.fixture
def fake_solver():
    return FakeSolver()


@pytest.fixture
def calendar():
    return CalendarState()


@pytest.fixture
def employee_rows():
    return [
        {"EmployeeId": "1", "Name": "Ann", "work_percentages": 100, "Availability": "[\"Mon\", \"Tue\"]",
         "Skills": "[\"cashier\"]", "Preferences": "[\"MORNING\"]"},
        {"EmployeeId": "2", "Name": "Ben", "work_percentages": 50, "Availability": "Weekends",
         "Skills": "{broken", "Preferences": None},
    ]


@pytest.fixture
def shift_rows():
    return [
        {"ShiftID": "s1", "StartTime": "2024-06-03T09:00:00", "EndTime": "2024-06-03T13:00:00",
         "ShiftStatus": "Scheduled", "RequiredSkill": "cashier", "location": "Main Store"},
        {"ShiftID": "s2", "StartTime": "2024-06-03T18:00:00", "EndTime": "2024-06-03T21:00:00",
         "ShiftStatus": "Scheduled", "RequiredSkill": "cashier", "location": "Main Store"},
    ]
