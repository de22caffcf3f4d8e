from typing import Any, Dict, Iterable, List
import json
import logging

logger = logging.getLogger(__name__)


def parse_list(value: Any) -> List[str]:
    """
    Defensively turn a list-ish field into a list of strings.

    Row-store fields such as Skills/Preferences arrive either as real lists or
    as JSON-encoded text. Anything that cannot be read becomes an empty list.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    if not isinstance(value, str):
        return []
    s = value.strip()
    if not s:
        return []
    try:
        decoded = json.loads(s)
    except (json.JSONDecodeError, ValueError):
        logger.debug(f"[PAYLOAD] Could not decode list field {s[:40]!r}; using []")
        return []
    if isinstance(decoded, list):
        return [str(v).strip() for v in decoded if v is not None and str(v).strip()]
    if isinstance(decoded, (str, int, float)) and str(decoded).strip():
        return [str(decoded).strip()]
    return []


def parse_availability(value: Any) -> List[str]:
    """Availability is a list, JSON-array text, comma-separated text or a single free-text value."""
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return []
        if s.startswith("[") or s.startswith("\""):
            return parse_list(s)
        if "," in s:
            return [part.strip() for part in s.split(",") if part.strip()]
        return [s]
    return parse_list(value)


def _as_dict(record: Any) -> Dict[str, Any]:
    if hasattr(record, "model_dump"):
        return record.model_dump()
    return dict(record or {})


def _pick(d: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


def _iso(value: Any) -> str:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value or "")


def _work_percentage(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def build_employee_entry(employee: Any) -> Dict[str, Any]:
    d = _as_dict(employee)
    return {
        "name": str(_pick(d, "name", "Name", default="")),
        "skills": parse_list(_pick(d, "skills", "Skills")),
        "unavailableDates": parse_list(_pick(d, "unavailable_dates", "unavailableDates")),
        "undesiredDates": parse_list(_pick(d, "undesired_dates", "undesiredDates")),
        "desiredDates": parse_list(_pick(d, "desired_dates", "desiredDates")),
        "shiftPreferences": parse_list(_pick(d, "preferences", "Preferences", "shiftPreferences")),
        "workPercentage": _work_percentage(_pick(d, "work_percentage", "work_percentages", "workPercentage", default=0)),
    }


def build_shift_entry(shift: Any) -> Dict[str, Any]:
    d = _as_dict(shift)
    return {
        "id": str(_pick(d, "id", "ShiftID", default="")),
        "start": _iso(_pick(d, "start", "StartTime")),
        "end": _iso(_pick(d, "end", "EndTime")),
        "location": str(_pick(d, "location", default="")),
        "requiredSkill": str(_pick(d, "required_skill", "RequiredSkill", "requiredSkill", default="")),
    }


def build_payload(employees: Iterable[Any], shifts: Iterable[Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Shape selected employees and shifts into the solver's request body. No side effects."""
    return {
        "employees": [build_employee_entry(e) for e in employees],
        "shifts": [build_shift_entry(s) for s in shifts],
    }
