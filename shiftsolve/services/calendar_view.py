from typing import List, Dict, Any, Iterable
from datetime import date, timedelta
import calendar

import pandas as pd

from shiftsolve.data.models import ScheduleItem

EXPORT_COLUMNS = ["date", "start_time", "end_time", "title", "employees", "color"]


def _sort_key(item: ScheduleItem) -> tuple:
    return (item.date, item.start_time, item.title, item.id)


def month_grid(items: Iterable[ScheduleItem], year: int, month: int) -> List[List[Dict[str, Any]]]:
    """
    Lay out a month as Sunday-first weeks.

    Returns:
        List of weeks; each week is 7 cells {date, in_month, items}, where
        items are the ScheduleItems (as dicts) falling on that day.
    """
    by_day: Dict[date, List[ScheduleItem]] = {}
    for item in items:
        by_day.setdefault(item.date, []).append(item)

    first = date(year, month, 1)
    # date.weekday(): Monday=0 ... Sunday=6; shift so the grid starts on Sunday
    lead = (first.weekday() + 1) % 7
    cursor = first - timedelta(days=lead)
    days_in_month = calendar.monthrange(year, month)[1]
    last = date(year, month, days_in_month)

    weeks = []
    while cursor <= last:
        week = []
        for _ in range(7):
            day_items = sorted(by_day.get(cursor, []), key=_sort_key)
            week.append({
                "date": cursor.isoformat(),
                "in_month": cursor.month == month,
                "items": [i.model_dump(mode="json") for i in day_items],
            })
            cursor += timedelta(days=1)
        weeks.append(week)
    return weeks


def format_items_for_display(items: Iterable[ScheduleItem]) -> List[Dict[str, Any]]:
    """Rows for a printable list, sorted by day and start time."""
    display = []
    for item in sorted(items, key=_sort_key):
        display.append({
            "day": item.date.strftime("%a %d.%m.%Y"),
            "time": f"{item.start_time}-{item.end_time}",
            "title": item.title,
            "employees": ", ".join(item.employees) or "-",
            "color": item.color,
        })
    return display


def to_frame(items: Iterable[ScheduleItem]) -> pd.DataFrame:
    rows = []
    for item in sorted(items, key=_sort_key):
        rows.append({
            "date": item.date.isoformat(),
            "start_time": item.start_time,
            "end_time": item.end_time,
            "title": item.title,
            "employees": "; ".join(item.employees),
            "color": item.color,
        })
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_csv(items: Iterable[ScheduleItem]) -> str:
    return to_frame(items).to_csv(index=False)
