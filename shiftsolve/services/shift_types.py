from datetime import datetime, date, timedelta
from enum import Enum
from typing import Dict, Optional, Tuple, Union

TimeLike = Union[datetime, str]


class ShiftType(str, Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    EVENING = "EVENING"
    NIGHT = "NIGHT"
    MORNING_AFTERNOON = "MORNING_AFTERNOON"
    AFTERNOON_EVENING = "AFTERNOON_EVENING"
    EVENING_NIGHT = "EVENING_NIGHT"
    LONG_SHIFT = "LONG_SHIFT"


SHIFT_TYPE_LABELS: Dict[ShiftType, str] = {
    ShiftType.MORNING: "Morning Shift",
    ShiftType.AFTERNOON: "Afternoon Shift",
    ShiftType.EVENING: "Evening Shift",
    ShiftType.NIGHT: "Night Shift",
    ShiftType.MORNING_AFTERNOON: "Morning-Afternoon Shift",
    ShiftType.AFTERNOON_EVENING: "Afternoon-Evening Shift",
    ShiftType.EVENING_NIGHT: "Evening-Night Shift",
    ShiftType.LONG_SHIFT: "Long Shift",
}

SHIFT_TYPE_COLORS: Dict[ShiftType, str] = {
    ShiftType.MORNING: "blue",
    ShiftType.AFTERNOON: "green",
    ShiftType.EVENING: "purple",
    ShiftType.NIGHT: "slate",
    ShiftType.MORNING_AFTERNOON: "teal",
    ShiftType.AFTERNOON_EVENING: "amber",
    ShiftType.EVENING_NIGHT: "indigo",
    ShiftType.LONG_SHIFT: "rose",
}

DEFAULT_SHIFT_HOURS: Dict[ShiftType, Tuple[str, str]] = {
    ShiftType.MORNING: ("06:00", "14:00"),
    ShiftType.AFTERNOON: ("12:00", "20:00"),
    ShiftType.EVENING: ("16:00", "00:00"),
    ShiftType.NIGHT: ("22:00", "06:00"),
    ShiftType.MORNING_AFTERNOON: ("08:00", "16:00"),
    ShiftType.AFTERNOON_EVENING: ("14:00", "22:00"),
    ShiftType.EVENING_NIGHT: ("18:00", "02:00"),
    ShiftType.LONG_SHIFT: ("08:00", "20:00"),
}

STATUS_COLORS: Dict[str, str] = {
    "Scheduled": "green",
    "In Progress": "blue",
    "Completed": "gray",
    "Cancelled": "red",
}

LONG_SHIFT_HOURS = 8


def parse_timestamp(value: TimeLike) -> datetime:
    """Parse an ISO timestamp (a trailing 'Z' is accepted)."""
    if isinstance(value, datetime):
        return value
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


def parse_clock(value: str) -> Tuple[int, int]:
    """Parse 'HH:MM' (or 'HH:MM:SS') into (hour, minute)."""
    parts = str(value).strip().split(":")
    hour = int(parts[0])
    minute = int(parts[1]) if len(parts) > 1 else 0
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid clock time: {value!r}")
    return hour, minute


def span_on_day(day: date, start_time: str, end_time: str) -> Tuple[datetime, datetime]:
    """Anchor a pair of clock times on a day; an end at or before the start rolls over midnight."""
    sh, sm = parse_clock(start_time)
    eh, em = parse_clock(end_time)
    start = datetime(day.year, day.month, day.day, sh, sm)
    end = datetime(day.year, day.month, day.day, eh, em)
    if end <= start:
        end += timedelta(days=1)
    return start, end


def classify(start: TimeLike, end: TimeLike) -> ShiftType:
    """
    Derive the shift-type category of a time span.

    Spans longer than 8 hours are LONG_SHIFT. Otherwise the start hour picks
    the bucket (MORNING [6,12), AFTERNOON [12,18), EVENING [18,22), NIGHT
    otherwise), and a span that ends in the next bucket is promoted to the
    compound category.
    """
    start_dt = parse_timestamp(start)
    end_dt = parse_timestamp(end)
    duration = (end_dt - start_dt).total_seconds() / 3600.0
    if duration > LONG_SHIFT_HOURS:
        return ShiftType.LONG_SHIFT

    start_hour = start_dt.hour
    end_hour = end_dt.hour

    if 6 <= start_hour < 12:
        shift_type = ShiftType.MORNING
    elif 12 <= start_hour < 18:
        shift_type = ShiftType.AFTERNOON
    elif 18 <= start_hour < 22:
        shift_type = ShiftType.EVENING
    else:
        shift_type = ShiftType.NIGHT

    if start_hour < 12 and 12 <= end_hour < 18:
        shift_type = ShiftType.MORNING_AFTERNOON
    elif start_hour < 18 and 18 <= end_hour < 22:
        shift_type = ShiftType.AFTERNOON_EVENING
    elif start_hour < 22 and end_hour >= 22:
        shift_type = ShiftType.EVENING_NIGHT

    return shift_type


def label(shift_type: ShiftType) -> str:
    return SHIFT_TYPE_LABELS[ShiftType(shift_type)]


def color(shift_type: ShiftType) -> str:
    return SHIFT_TYPE_COLORS.get(ShiftType(shift_type), "gray")


def default_hours(shift_type: ShiftType) -> Tuple[str, str]:
    return DEFAULT_SHIFT_HOURS.get(ShiftType(shift_type), ("09:00", "17:00"))


def from_label(name: str) -> Optional[ShiftType]:
    for shift_type, text in SHIFT_TYPE_LABELS.items():
        if text == name:
            return shift_type
    return None


def coerce(value: Union[ShiftType, str, None]) -> Optional[ShiftType]:
    """Accept an enum member, its key ('MORNING') or its label ('Morning Shift')."""
    if value is None or value == "":
        return None
    if isinstance(value, ShiftType):
        return value
    try:
        return ShiftType(str(value).strip().upper())
    except ValueError:
        return from_label(str(value).strip())


def status_color(status: str) -> str:
    return STATUS_COLORS.get(str(status), "gray")
