from __future__ import annotations
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional
from copy import deepcopy
import logging
import threading
import time

from shiftsolve.config import RECORD_CACHE_TTL
from shiftsolve.data.models import ScheduleItem

logger = logging.getLogger(__name__)

CACHED_EMPLOYEES_KEY = "cachedEmployees"
LAST_FETCH_KEY = "lastFetchTime"


class CalendarState:
    """
    The single owner of ScheduleItems shown on the calendar.

    Every mutation runs under one lock, so a reconciliation pass from a poll
    thread and a manual edit from a request handler never interleave mid-merge.
    """

    def __init__(self, items: Iterable[ScheduleItem] | None = None):
        self._lock = threading.Lock()
        self._items: Dict[str, ScheduleItem] = {}
        for item in items or []:
            self._items[item.id] = item.model_copy(deep=True)

    def merge(self, items: Iterable[ScheduleItem], guard: Optional[Callable[[], bool]] = None) -> int:
        """
        Replace entries sharing an id with the new ones; leave all others untouched.

        `guard` is evaluated under the lock; when it returns False nothing is
        written and 0 is returned.
        """
        incoming = [item.model_copy(deep=True) for item in items]
        with self._lock:
            if guard is not None and not guard():
                return 0
            for item in incoming:
                self._items[item.id] = item
        return len(incoming)

    def snapshot(self) -> List[ScheduleItem]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def get(self, item_id: str) -> Optional[ScheduleItem]:
        with self._lock:
            item = self._items.get(item_id)
            return item.model_copy(deep=True) if item else None

    def add_item(self, item: ScheduleItem) -> ScheduleItem:
        with self._lock:
            self._items[item.id] = item.model_copy(deep=True)
        logger.info(f"[CALENDAR] Added {item.title} on {item.date} for {', '.join(item.employees) or '-'}")
        return item

    def remove_item(self, item_id: str) -> bool:
        with self._lock:
            return self._items.pop(item_id, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._items)
            self._items.clear()
        logger.info(f"[CALENDAR] Cleared {count} items")
        return count

    def add_employee(self, item_id: str, name: str) -> ScheduleItem:
        with self._lock:
            item = self._require(item_id)
            if name not in item.employees:
                item.employees.append(name)
            return item.model_copy(deep=True)

    def remove_employee(self, item_id: str, name: str) -> ScheduleItem:
        with self._lock:
            item = self._require(item_id)
            item.employees = [e for e in item.employees if e != name]
            return item.model_copy(deep=True)

    def move_item(self, item_id: str, new_date: date) -> ScheduleItem:
        with self._lock:
            item = self._require(item_id)
            item.date = new_date
            return item.model_copy(deep=True)

    def items_for_day(self, day: date, employee: str = "all") -> List[ScheduleItem]:
        return [
            item for item in self.snapshot()
            if item.date == day and (employee == "all" or employee in item.employees)
        ]

    def items_for_month(self, year: int, month: int) -> List[ScheduleItem]:
        items = [i for i in self.snapshot() if i.date.year == year and i.date.month == month]
        items.sort(key=lambda i: (i.date, i.start_time, i.id))
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def _require(self, item_id: str) -> ScheduleItem:
        item = self._items.get(item_id)
        if item is None:
            raise KeyError(item_id)
        return item


class RecordCache:
    """Short-lived local copy of employee rows to cut repeat fetches. Not durable."""

    def __init__(self, ttl: float = RECORD_CACHE_TTL, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def is_fresh(self) -> bool:
        with self._lock:
            fetched = self._entries.get(LAST_FETCH_KEY)
            if fetched is None or CACHED_EMPLOYEES_KEY not in self._entries:
                return False
            return (self._clock() - fetched) < self.ttl

    def get_employees(self, fetch: Callable[[], List[Any]]) -> List[Any]:
        if self.is_fresh():
            with self._lock:
                return deepcopy(self._entries[CACHED_EMPLOYEES_KEY])
        logger.info("[CACHE] Employee cache stale or empty; refetching")
        employees = fetch()
        self.set_employees(employees)
        return deepcopy(employees)

    def set_employees(self, employees: List[Any]) -> None:
        with self._lock:
            self._entries[CACHED_EMPLOYEES_KEY] = deepcopy(employees)
            self._entries[LAST_FETCH_KEY] = self._clock()

    def invalidate(self) -> None:
        with self._lock:
            self._entries.pop(CACHED_EMPLOYEES_KEY, None)
            self._entries.pop(LAST_FETCH_KEY, None)
