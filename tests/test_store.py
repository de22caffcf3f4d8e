from datetime import date

import pytest

from shiftsolve.data.store import CACHED_EMPLOYEES_KEY, RecordCache
from shiftsolve.services.reconcile import make_manual_item
from shiftsolve.services.shift_types import ShiftType


def seed(calendar):
    calendar.add_item(make_manual_item(date(2024, 6, 3), "06:00", "14:00", ["Ann"], item_id="a"))
    calendar.add_item(make_manual_item(date(2024, 6, 3), "18:00", "22:00", ["Ben"], item_id="b"))
    calendar.add_item(make_manual_item(date(2024, 7, 1), "22:00", "06:00", ["Ann", "Ben"], item_id="c"))


def test_add_and_filter_by_day_and_employee(calendar):
    seed(calendar)

    assert len(calendar) == 3
    assert {i.id for i in calendar.items_for_day(date(2024, 6, 3))} == {"a", "b"}
    assert [i.id for i in calendar.items_for_day(date(2024, 6, 3), employee="Ben")] == ["b"]
    assert calendar.items_for_day(date(2024, 6, 4)) == []
    assert [i.id for i in calendar.items_for_month(2024, 6)] == ["a", "b"]
    assert calendar.get("c").shift_type == ShiftType.NIGHT


def test_employee_edits(calendar):
    seed(calendar)

    assert calendar.add_employee("a", "Cleo").employees == ["Ann", "Cleo"]
    # adding twice does not duplicate
    assert calendar.add_employee("a", "Cleo").employees == ["Ann", "Cleo"]
    assert calendar.remove_employee("a", "Ann").employees == ["Cleo"]
    assert calendar.get("a").employees == ["Cleo"]


def test_move_keeps_times_and_employees(calendar):
    seed(calendar)
    moved = calendar.move_item("b", date(2024, 6, 10))

    assert moved.date == date(2024, 6, 10)
    assert (moved.start_time, moved.end_time) == ("18:00", "22:00")
    assert calendar.items_for_day(date(2024, 6, 3), employee="Ben") == []


def test_unknown_item_raises_key_error(calendar):
    with pytest.raises(KeyError):
        calendar.add_employee("missing", "Ann")
    with pytest.raises(KeyError):
        calendar.move_item("missing", date(2024, 1, 1))
    assert calendar.remove_item("missing") is False


def test_remove_and_clear(calendar):
    seed(calendar)
    assert calendar.remove_item("a") is True
    assert calendar.get("a") is None
    assert calendar.clear() == 2
    assert len(calendar) == 0


def test_snapshot_is_a_copy(calendar):
    seed(calendar)
    snap = calendar.snapshot()
    snap[0].employees.append("Intruder")
    assert "Intruder" not in calendar.get(snap[0].id).employees


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_record_cache_serves_until_ttl_expires():
    clock = FakeClock()
    cache = RecordCache(ttl=300, clock=clock)
    fetches = []

    def fetch():
        fetches.append(clock.now)
        return [{"name": "Ann"}]

    assert not cache.is_fresh()
    assert cache.get_employees(fetch) == [{"name": "Ann"}]
    clock.now += 120
    assert cache.get_employees(fetch) == [{"name": "Ann"}]
    assert len(fetches) == 1

    clock.now += 181
    cache.get_employees(fetch)
    assert len(fetches) == 2


def test_record_cache_invalidate_forces_refetch():
    cache = RecordCache(ttl=300, clock=FakeClock())
    calls = []
    cache.get_employees(lambda: calls.append(1) or [])
    cache.invalidate()
    assert not cache.is_fresh()
    cache.get_employees(lambda: calls.append(1) or [])
    assert len(calls) == 2
    assert CACHED_EMPLOYEES_KEY == "cachedEmployees"
