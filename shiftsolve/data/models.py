import datetime as dt
from enum import Enum
from typing import Any, Dict, List, Optional
import json
import logging

from pydantic import BaseModel, Field, field_validator, model_validator

from shiftsolve.services.payload import parse_availability, parse_list
from shiftsolve.services import shift_types
from shiftsolve.services.shift_types import ShiftType

logger = logging.getLogger(__name__)


class ShiftStatus(str, Enum):
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


_STATUS_ALIASES = {
    "scheduled": ShiftStatus.SCHEDULED,
    "open": ShiftStatus.SCHEDULED,
    "in progress": ShiftStatus.IN_PROGRESS,
    "in_progress": ShiftStatus.IN_PROGRESS,
    "completed": ShiftStatus.COMPLETED,
    "cancelled": ShiftStatus.CANCELLED,
    "canceled": ShiftStatus.CANCELLED,
}


class Employee(BaseModel):
    id: Optional[str] = None
    name: str
    work_percentage: float = Field(ge=0, le=100)
    skills: List[str] = Field(default_factory=list)
    preferences: List[str] = Field(default_factory=list)  # preferred shift types
    availability: List[str] = Field(default_factory=list)
    role_id: Optional[str] = None
    created_at: Optional[str] = None

    @field_validator("skills", "preferences", mode="before")
    @classmethod
    def _decode_list(cls, v: Any) -> List[str]:
        return parse_list(v)

    @field_validator("availability", mode="before")
    @classmethod
    def _decode_availability(cls, v: Any) -> List[str]:
        return parse_availability(v)


class Shift(BaseModel):
    id: Optional[str] = None
    start: dt.datetime
    end: dt.datetime
    required_skill: str
    status: ShiftStatus = ShiftStatus.SCHEDULED
    location: str = ""
    created_at: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, v: Any) -> ShiftStatus:
        if isinstance(v, ShiftStatus):
            return v
        key = str(v or "").strip().lower()
        if key not in _STATUS_ALIASES:
            logger.warning(f"[MODELS] Unknown shift status {v!r}; treating as Scheduled")
        return _STATUS_ALIASES.get(key, ShiftStatus.SCHEDULED)

    @model_validator(mode="after")
    def _end_after_start(self) -> "Shift":
        if self.end <= self.start:
            raise ValueError("Shift end must be after its start")
        return self

    @property
    def shift_type(self) -> ShiftType:
        return shift_types.classify(self.start, self.end)


class ScheduleItem(BaseModel):
    id: str
    title: str
    employees: List[str] = Field(default_factory=list)
    date: dt.date
    color: str
    start_time: str
    end_time: str
    shift_type: Optional[ShiftType] = None


def normalize_employee_row(row: Dict[str, Any]) -> Employee:
    """Single entry point from row-store (or snake_case) dicts into an Employee."""
    def pick(*keys: str, default: Any = None) -> Any:
        for k in keys:
            if k in row and row[k] is not None:
                return row[k]
        return default

    rid = pick("EmployeeId", "id", "employee_id")
    return Employee(
        id=str(rid) if rid is not None else None,
        name=str(pick("Name", "name", default="")).strip(),
        work_percentage=pick("work_percentages", "work_percentage", "workPercentage", default=100),
        skills=pick("Skills", "skills"),
        preferences=pick("Preferences", "preferences", "shiftPreferences"),
        availability=pick("Availability", "availability"),
        role_id=pick("employeeRoleId", "role_id"),
        created_at=pick("created_at"),
    )


def normalize_shift_row(row: Dict[str, Any]) -> Shift:
    def pick(*keys: str, default: Any = None) -> Any:
        for k in keys:
            if k in row and row[k] is not None:
                return row[k]
        return default

    rid = pick("ShiftID", "id", "shift_id")
    return Shift(
        id=str(rid) if rid is not None else None,
        start=shift_types.parse_timestamp(pick("StartTime", "start", default="")),
        end=shift_types.parse_timestamp(pick("EndTime", "end", default="")),
        required_skill=str(pick("RequiredSkill", "required_skill", "requiredSkill", default="")),
        status=pick("ShiftStatus", "status", default=ShiftStatus.SCHEDULED),
        location=str(pick("location", "Location", default="")),
        created_at=pick("created_at"),
    )


def employee_to_row(employee: Employee) -> Dict[str, Any]:
    # The row store keeps list fields as JSON text
    row: Dict[str, Any] = {
        "Name": employee.name,
        "work_percentages": employee.work_percentage,
        "Availability": json.dumps(employee.availability),
        "Skills": json.dumps(employee.skills),
        "Preferences": json.dumps(employee.preferences),
    }
    if employee.role_id is not None:
        row["employeeRoleId"] = employee.role_id
    return row


def shift_to_row(shift: Shift) -> Dict[str, Any]:
    return {
        "StartTime": shift.start.isoformat(),
        "EndTime": shift.end.isoformat(),
        "ShiftStatus": shift.status.value,
        "RequiredSkill": shift.required_skill,
        "location": shift.location,
    }
