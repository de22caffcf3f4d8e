from typing import Any, Dict, List, Mapping, Optional, Tuple
from datetime import date, datetime
import logging
import uuid

from shiftsolve.data.models import ScheduleItem
from shiftsolve.errors import ReconciliationWarning
from shiftsolve.services import shift_types
from shiftsolve.services.shift_types import ShiftType

logger = logging.getLogger(__name__)


def make_item(item_id: str, start: datetime, end: datetime, employees: List[str],
              shift_type: Optional[ShiftType] = None) -> ScheduleItem:
    """Build a calendar entry; title and color follow the shift-type classification."""
    kind = shift_type or shift_types.classify(start, end)
    return ScheduleItem(
        id=str(item_id),
        title=shift_types.label(kind),
        employees=list(employees),
        date=start.date(),
        color=shift_types.color(kind),
        start_time=start.strftime("%H:%M"),
        end_time=end.strftime("%H:%M"),
        shift_type=kind,
    )


def make_manual_item(day: date, start_time: str, end_time: str, employees: List[str],
                     shift_type: Optional[ShiftType] = None, item_id: Optional[str] = None) -> ScheduleItem:
    start, end = shift_types.span_on_day(day, start_time, end_time)
    return make_item(item_id or f"manual-{uuid.uuid4().hex[:8]}", start, end, employees, shift_type)


def _ordered(start: datetime, end: datetime) -> Optional[Tuple[datetime, datetime]]:
    # A naive and an aware timestamp cannot be compared or classified
    if (start.utcoffset() is None) != (end.utcoffset() is None):
        return None
    if end <= start:
        return None
    return start, end


def _shift_span(record: Any) -> Optional[Tuple[datetime, datetime]]:
    if record is None:
        return None
    if hasattr(record, "start") and hasattr(record, "end"):
        return _ordered(record.start, record.end)
    if isinstance(record, Mapping):
        start = record.get("start") or record.get("StartTime")
        end = record.get("end") or record.get("EndTime")
        if not start or not end:
            return None
        try:
            return _ordered(shift_types.parse_timestamp(start), shift_types.parse_timestamp(end))
        except (TypeError, ValueError):
            return None
    return None


def _employee_name(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        value = value.get("name")
    if value is None:
        return None
    name = str(value).strip()
    return name or None


def _shift_ref(assignment: Mapping) -> Optional[str]:
    ref = assignment.get("shift")
    if isinstance(ref, Mapping):
        ref = ref.get("id")
    if ref is None:
        ref = assignment.get("shiftId")
    return str(ref) if ref is not None else None


def reconcile(result: Any, known_shifts: Optional[Mapping[str, Any]] = None) -> Tuple[List[ScheduleItem], List[ReconciliationWarning]]:
    """
    Map a solver status body onto ScheduleItems.

    Reads the current `shifts[]` shape (each shift carrying its employee) and
    the legacy `assignments[]` + `employees[]` shape. Pairings on the same
    shift collapse into one item. Entries whose shift cannot be matched, or
    that have no employee, are skipped and reported as warnings.

    Raises ValueError when the body itself is unusable, so nothing is merged.
    """
    if not isinstance(result, Mapping):
        raise ValueError("Solver result must be a JSON object")

    known: Dict[str, Any] = {str(k): v for k, v in (known_shifts or {}).items()}
    warnings: List[ReconciliationWarning] = []
    grouped: Dict[str, Dict[str, Any]] = {}

    def warn(message: str) -> None:
        w = ReconciliationWarning(message)
        logger.warning(f"[RECONCILE] {message}")
        warnings.append(w)

    def add_pairing(shift_id: str, span: Tuple[datetime, datetime], name: str) -> None:
        entry = grouped.setdefault(shift_id, {"span": span, "employees": []})
        if name not in entry["employees"]:
            entry["employees"].append(name)

    result_shifts = result.get("shifts") or []
    if not isinstance(result_shifts, list):
        raise ValueError("Solver result 'shifts' must be a list")

    for s in result_shifts:
        if not isinstance(s, Mapping) or s.get("id") is None:
            warn(f"Skipping shift entry without id: {s!r}")
            continue
        shift_id = str(s["id"])
        if known and shift_id not in known:
            warn(f"Skipping shift {shift_id}: not among the submitted shifts")
            continue
        span = _shift_span(s) or _shift_span(known.get(shift_id))
        if span is None:
            warn(f"Skipping shift {shift_id}: no usable start/end")
            continue
        name = _employee_name(s.get("employee"))
        if name is None:
            warn(f"Skipping shift {shift_id}: no employee assigned")
            continue
        add_pairing(shift_id, span, name)

    assignments = result.get("assignments") or []
    if assignments:
        if not isinstance(assignments, list):
            raise ValueError("Solver result 'assignments' must be a list")
        by_id = {str(s.get("id")): s for s in result_shifts if isinstance(s, Mapping) and s.get("id") is not None}
        employee_names = {
            str(e.get("id")): e.get("name")
            for e in (result.get("employees") or [])
            if isinstance(e, Mapping) and e.get("id") is not None
        }
        for a in assignments:
            if not isinstance(a, Mapping):
                warn(f"Skipping malformed assignment: {a!r}")
                continue
            shift_id = _shift_ref(a)
            record = known.get(shift_id) if shift_id is not None else None
            if record is None and shift_id is not None and not known:
                record = by_id.get(shift_id)
            span = _shift_span(record)
            if shift_id is None or span is None:
                warn(f"Skipping assignment for unknown shift {shift_id!r}")
                continue
            name = _employee_name(a.get("employee")) or _employee_name(a.get("employeeName"))
            if name is None and a.get("employeeId") is not None:
                name = _employee_name(employee_names.get(str(a["employeeId"])))
            if name is None:
                warn(f"Skipping assignment for shift {shift_id}: no employee")
                continue
            add_pairing(shift_id, span, name)

    items = [
        make_item(shift_id, entry["span"][0], entry["span"][1], entry["employees"])
        for shift_id, entry in grouped.items()
    ]
    return items, warnings
