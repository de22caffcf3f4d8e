from typing import Any, Dict, List, Optional
import json
import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from shiftsolve.config import HTTP_TIMEOUT, RECORDS_API_KEY, RECORDS_BASE_URL
from shiftsolve.data.models import (
    Employee,
    Shift,
    ShiftStatus,
    employee_to_row,
    normalize_employee_row,
    normalize_shift_row,
    shift_to_row,
)
from shiftsolve.errors import RecordsError, ValidationError
from shiftsolve.services import shift_types
from shiftsolve.services.payload import parse_availability, parse_list

logger = logging.getLogger(__name__)

EMPLOYEE_ENDPOINT = "/Employee"
EMPLOYEE_ROLE_ENDPOINT = "/EmployeeRole"
SHIFT_ENDPOINT = "/Shift"

_EMPLOYEE_COLUMNS = {
    "name": "Name",
    "work_percentage": "work_percentages",
    "availability": "Availability",
    "skills": "Skills",
    "preferences": "Preferences",
    "role_id": "employeeRoleId",
}
_SHIFT_COLUMNS = {
    "start": "StartTime",
    "end": "EndTime",
    "status": "ShiftStatus",
    "required_skill": "RequiredSkill",
    "location": "location",
}


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _work_percentage(value: Any) -> float:
    try:
        pct = float(value)
    except (TypeError, ValueError):
        raise ValidationError("work_percentage", "Work percentage must be a number")
    if not 0 <= pct <= 100:
        raise ValidationError("work_percentage", "Work percentage must be between 0 and 100")
    return pct



_EMPLOYEE_REQUIRED = (("name", "Employee name"), ("availability", "Availability"),
                      ("work_percentage", "Work percentage"))
_SHIFT_REQUIRED = (("start", "Start time"), ("end", "End time"),
                   ("location", "Location"), ("required_skill", "Required skill"))


def _check_required(data: Dict[str, Any], required, partial: bool = False) -> None:
    """Required fields must be non-blank; on a partial update only the fields being sent are checked."""
    for key, text in required:
        if partial and key not in data:
            continue
        value = data.get(key)
        if _blank(value) or (key == "availability" and not parse_availability(value)):
            raise ValidationError(key, f"{text} is required")


def _check_span(start: Any, end: Any) -> None:
    try:
        start = shift_types.parse_timestamp(start)
        end = shift_types.parse_timestamp(end)
    except (TypeError, ValueError):
        raise ValidationError("start", "Start and end must be ISO timestamps")
    try:
        if end <= start:
            raise ValidationError("end", "End time must be after start time")
    except TypeError:
        raise ValidationError("end", "Start and end must both carry (or both omit) a timezone")


def validate_employee_form(data: Dict[str, Any]) -> Employee:
    """Check the add-employee form before anything is sent."""
    _check_required(data, _EMPLOYEE_REQUIRED)
    return Employee(
        name=str(data["name"]).strip(),
        work_percentage=_work_percentage(data.get("work_percentage")),
        availability=parse_availability(data.get("availability")),
        skills=parse_list(data.get("skills")),
        preferences=parse_list(data.get("preferences")),
        role_id=data.get("role_id"),
    )


def validate_shift_form(data: Dict[str, Any]) -> Shift:
    _check_required(data, _SHIFT_REQUIRED)
    _check_span(data["start"], data["end"])
    return Shift(
        start=shift_types.parse_timestamp(data["start"]),
        end=shift_types.parse_timestamp(data["end"]),
        location=str(data["location"]).strip(),
        required_skill=str(data["required_skill"]).strip(),
        status=data.get("status") or ShiftStatus.SCHEDULED,
    )


def _partial_row(data: Dict[str, Any], columns: Dict[str, str]) -> Dict[str, Any]:
    row: Dict[str, Any] = {}
    for key, value in data.items():
        column = columns.get(key)
        if column is None:
            continue
        if key in ("skills", "preferences"):
            value = json.dumps(parse_list(value))
        elif key == "availability":
            value = json.dumps(parse_availability(value))
        elif key == "work_percentage":
            value = _work_percentage(value)
        elif key in ("start", "end"):
            value = shift_types.parse_timestamp(value).isoformat()
        elif key == "status":
            value = ShiftStatus(value).value if isinstance(value, ShiftStatus) else str(value)
        elif isinstance(value, str):
            value = value.strip()
        row[column] = value
    return row


def _read_back(rows: List[Dict[str, Any]], normalize, kind: str):
    if not rows:
        return None
    try:
        return normalize(rows[0])
    except ValueError as e:
        # pydantic's ValidationError is a ValueError
        logger.error(f"[RECORDS] Row store returned an invalid {kind} row: {e}")
        raise RecordsError(f"Row store returned an invalid {kind} row") from e


class RecordsClient:
    """CRUD against the PostgREST-style row store holding employees and shifts."""

    def __init__(self, base_url: str = RECORDS_BASE_URL, api_key: Optional[str] = RECORDS_API_KEY,
                 timeout: float = HTTP_TIMEOUT, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        # We avoid logging credentials and only set header
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(self, method: str, endpoint: str, params: Optional[dict] = None,
                 body: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            r = self._client.request(method, url, params=params, json=body, headers=self._headers())
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"[RECORDS] {method} {endpoint} failed: {e.response.status_code} - {e.response.text}")
            raise RecordsError(f"Row store error: {e.response.status_code}",
                               status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"[RECORDS] {method} {endpoint} transport error: {e}")
            raise RecordsError(f"Could not reach row store: {e}") from e
        if not r.content:
            return []
        try:
            return r.json()
        except ValueError as e:
            raise RecordsError("Row store returned an unreadable body") from e

    @staticmethod
    def _rows(data: Any) -> List[Dict[str, Any]]:
        if isinstance(data, dict):
            return [data]
        return [row for row in (data or []) if isinstance(row, dict)]

    # Employees

    def list_employees(self) -> List[Employee]:
        employees = []
        for row in self._rows(self._request("GET", EMPLOYEE_ENDPOINT)):
            try:
                employees.append(normalize_employee_row(row))
            except PydanticValidationError as e:
                logger.warning(f"[RECORDS] Skipping employee row {row.get('EmployeeId')}: {e.error_count()} invalid fields")
        return employees

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        rows = self._rows(self._request("GET", EMPLOYEE_ENDPOINT, params={"EmployeeId": f"eq.{employee_id}"}))
        return _read_back(rows, normalize_employee_row, "employee")

    def create_employee(self, data: Dict[str, Any]) -> Employee:
        employee = validate_employee_form(data)
        rows = self._rows(self._request("POST", EMPLOYEE_ENDPOINT, body=employee_to_row(employee)))
        logger.info(f"[RECORDS] Created employee {employee.name}")
        return _read_back(rows, normalize_employee_row, "employee") or employee

    def update_employee(self, employee_id: str, data: Dict[str, Any]) -> Optional[Employee]:
        _check_required(data, _EMPLOYEE_REQUIRED, partial=True)
        row = _partial_row(data, _EMPLOYEE_COLUMNS)
        rows = self._rows(self._request("PATCH", EMPLOYEE_ENDPOINT,
                                        params={"EmployeeId": f"eq.{employee_id}"}, body=row))
        return _read_back(rows, normalize_employee_row, "employee")

    def delete_employee(self, employee_id: str) -> None:
        # Employees are always deleted by surrogate id, never by name
        self._request("DELETE", EMPLOYEE_ENDPOINT, params={"EmployeeId": f"eq.{employee_id}"})
        logger.info(f"[RECORDS] Deleted employee {employee_id}")

    def list_roles(self) -> List[Dict[str, Any]]:
        return self._rows(self._request("GET", EMPLOYEE_ROLE_ENDPOINT))

    # Shifts

    def list_shifts(self) -> List[Shift]:
        shifts = []
        for row in self._rows(self._request("GET", SHIFT_ENDPOINT)):
            try:
                shifts.append(normalize_shift_row(row))
            except (PydanticValidationError, ValueError) as e:
                logger.warning(f"[RECORDS] Skipping shift row {row.get('ShiftID')}: {e}")
        return shifts

    def get_shift(self, shift_id: str) -> Optional[Shift]:
        rows = self._rows(self._request("GET", SHIFT_ENDPOINT, params={"ShiftID": f"eq.{shift_id}"}))
        return _read_back(rows, normalize_shift_row, "shift")

    def create_shift(self, data: Dict[str, Any]) -> Shift:
        shift = validate_shift_form(data)
        rows = self._rows(self._request("POST", SHIFT_ENDPOINT, body=shift_to_row(shift)))
        logger.info(f"[RECORDS] Created shift {shift.start.isoformat()} at {shift.location}")
        return _read_back(rows, normalize_shift_row, "shift") or shift

    def update_shift(self, shift_id: str, data: Dict[str, Any]) -> Optional[Shift]:
        _check_required(data, _SHIFT_REQUIRED, partial=True)
        if "start" in data or "end" in data:
            # The new span is checked against the stored one before anything is written
            current = self.get_shift(shift_id)
            if current is None:
                return None
            _check_span(data.get("start", current.start), data.get("end", current.end))
        try:
            row = _partial_row(data, _SHIFT_COLUMNS)
        except ValueError as e:
            raise ValidationError("start", f"Invalid shift update: {e}")
        rows = self._rows(self._request("PATCH", SHIFT_ENDPOINT,
                                        params={"ShiftID": f"eq.{shift_id}"}, body=row))
        return _read_back(rows, normalize_shift_row, "shift")

    def delete_shift(self, shift_id: str) -> None:
        self._request("DELETE", SHIFT_ENDPOINT, params={"ShiftID": f"eq.{shift_id}"})
        logger.info(f"[RECORDS] Deleted shift {shift_id}")

    def close(self) -> None:
        self._client.close()
