import datetime as dt
from typing import Any, Dict, Iterator, List, Optional
import logging
import threading

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from shiftsolve.api.ui import router as ui_router
from shiftsolve.config import LOG_LEVEL, RECORDS_BASE_URL, SOLVER_BASE_URL, SOLVER_MAX_ATTEMPTS, SOLVER_POLL_DELAY
from shiftsolve.data.models import Employee, Shift, normalize_employee_row, normalize_shift_row
from shiftsolve.data.store import CalendarState, RecordCache
from shiftsolve.errors import RecordsError, ValidationError
from shiftsolve.graph.build import run_schedule_safely
from shiftsolve.services import calendar_view, shift_types
from shiftsolve.services.poller import SessionRegistry
from shiftsolve.services.reconcile import make_manual_item
from shiftsolve.services.records import RecordsClient
from shiftsolve.services.solver_client import SolverClient
from shiftsolve.telemetry.sse import subscriber_count

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="ShiftSolve Scheduling Dashboard")
app.include_router(ui_router, prefix="/ui", tags=["ui"])

calendar = CalendarState()
record_cache = RecordCache()
sessions = SessionRegistry()


def get_records_client() -> Iterator[RecordsClient]:
    records = RecordsClient()
    try:
        yield records
    finally:
        records.close()


def get_solver_client() -> SolverClient:
    # Handed over to the schedule run, which closes it when the run ends
    return SolverClient()


@app.exception_handler(ValidationError)
def _validation_error(_request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(RecordsError)
def _records_error(_request, exc: RecordsError):
    status = exc.status_code if exc.status_code and exc.status_code >= 400 else 502
    return JSONResponse(status_code=status, content={"detail": str(exc)})


class EmployeeForm(BaseModel):
    name: Optional[str] = None
    work_percentage: Any = None
    availability: Any = None
    skills: Any = None
    preferences: Any = None
    role_id: Optional[str] = None


class ShiftForm(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None
    location: Optional[str] = None
    required_skill: Optional[str] = None
    status: Optional[str] = None


class GenerateRequest(BaseModel):
    employee_ids: List[str] = Field(default_factory=list)
    shift_ids: List[str] = Field(default_factory=list)
    # Inline records skip the row-store lookup
    employees: Optional[List[Dict[str, Any]]] = None
    shifts: Optional[List[Dict[str, Any]]] = None
    max_attempts: Optional[int] = None
    delay: Optional[float] = None
    wait: bool = False


class ManualItemRequest(BaseModel):
    date: dt.date
    employees: List[str] = Field(default_factory=list)
    shift_type: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class EmployeeNameRequest(BaseModel):
    name: str


class MoveRequest(BaseModel):
    date: dt.date


def _shift_view(shift: Shift) -> Dict[str, Any]:
    kind = shift.shift_type
    return {
        **shift.model_dump(mode="json"),
        "shift_type": kind.value,
        "shift_label": shift_types.label(kind),
        "color": shift_types.color(kind),
        "status_color": shift_types.status_color(shift.status.value),
    }


@app.get("/")
def root():
    return {"ok": True, "message": "ShiftSolve dashboard API. POST /schedule/generate to solve."}


@app.get("/solver_status")
def solver_status():
    active = sessions.active()
    # No secrets here
    return {
        "solver_base_url": SOLVER_BASE_URL,
        "records_base_url": RECORDS_BASE_URL,
        "max_attempts": SOLVER_MAX_ATTEMPTS,
        "poll_delay": SOLVER_POLL_DELAY,
        "active_session": active.to_dict() if active else None,
    }


# Employees

@app.get("/employees")
def list_employees(refresh: bool = False, records: RecordsClient = Depends(get_records_client)):
    if refresh:
        record_cache.invalidate()
    employees = record_cache.get_employees(records.list_employees)
    return [e.model_dump(mode="json") for e in employees]


@app.post("/employees", status_code=201)
def create_employee(form: EmployeeForm, records: RecordsClient = Depends(get_records_client)):
    employee = records.create_employee(form.model_dump())
    record_cache.invalidate()
    return employee.model_dump(mode="json")


@app.patch("/employees/{employee_id}")
def update_employee(employee_id: str, form: EmployeeForm, records: RecordsClient = Depends(get_records_client)):
    employee = records.update_employee(employee_id, form.model_dump(exclude_unset=True))
    record_cache.invalidate()
    if employee is None:
        raise HTTPException(status_code=404, detail=f"Employee {employee_id} not found")
    return employee.model_dump(mode="json")


@app.delete("/employees/{employee_id}")
def delete_employee(employee_id: str, records: RecordsClient = Depends(get_records_client)):
    records.delete_employee(employee_id)
    record_cache.invalidate()
    return {"ok": True, "deleted": employee_id}


@app.get("/employees/roles")
def list_roles(records: RecordsClient = Depends(get_records_client)):
    return records.list_roles()


@app.get("/employees/{employee_id}")
def get_employee(employee_id: str, records: RecordsClient = Depends(get_records_client)):
    employee = records.get_employee(employee_id)
    if employee is None:
        raise HTTPException(status_code=404, detail=f"Employee {employee_id} not found")
    return employee.model_dump(mode="json")


# Shifts

@app.get("/shifts")
def list_shifts(records: RecordsClient = Depends(get_records_client)):
    return [_shift_view(s) for s in records.list_shifts()]


@app.post("/shifts", status_code=201)
def create_shift(form: ShiftForm, records: RecordsClient = Depends(get_records_client)):
    return _shift_view(records.create_shift(form.model_dump()))


@app.patch("/shifts/{shift_id}")
def update_shift(shift_id: str, form: ShiftForm, records: RecordsClient = Depends(get_records_client)):
    shift = records.update_shift(shift_id, form.model_dump(exclude_unset=True))
    if shift is None:
        raise HTTPException(status_code=404, detail=f"Shift {shift_id} not found")
    return _shift_view(shift)


@app.delete("/shifts/{shift_id}")
def delete_shift(shift_id: str, records: RecordsClient = Depends(get_records_client)):
    records.delete_shift(shift_id)
    return {"ok": True, "deleted": shift_id}


# Schedule generation

def _select(req: GenerateRequest, records: RecordsClient) -> tuple[List[Employee], List[Shift]]:
    try:
        if req.employees is not None:
            employees = [normalize_employee_row(row) for row in req.employees]
        else:
            wanted = set(req.employee_ids)
            employees = [e for e in record_cache.get_employees(records.list_employees) if e.id in wanted]
        if req.shifts is not None:
            shifts = [normalize_shift_row(row) for row in req.shifts]
        else:
            wanted = set(req.shift_ids)
            shifts = [s for s in records.list_shifts() if s.id in wanted]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid record: {e}")
    return employees, shifts


@app.post("/schedule/generate")
def generate_schedule(req: GenerateRequest,
                      records: RecordsClient = Depends(get_records_client),
                      solver: SolverClient = Depends(get_solver_client)):
    try:
        employees, shifts = _select(req, records)
        if not employees or not shifts:
            raise HTTPException(status_code=400,
                                detail="Please select both employees and shifts before generating a schedule.")
    except Exception:
        # No run will take over the solver client
        solver.close()
        raise

    session = sessions.start()
    kwargs = {
        "max_attempts": req.max_attempts or SOLVER_MAX_ATTEMPTS,
        "delay": SOLVER_POLL_DELAY if req.delay is None else req.delay,
    }
    logger.info(f"[API] Session {session.session_id}: {len(employees)} employees, {len(shifts)} shifts")
    if req.wait:
        final_state = run_schedule_safely(session, calendar, solver, employees, shifts, **kwargs)
        return {"ok": True, **session.to_dict(), "status": (final_state or {}).get("status"),
                "warnings": (final_state or {}).get("warnings", [])}

    t = threading.Thread(target=run_schedule_safely, args=(session, calendar, solver, employees, shifts),
                         kwargs=kwargs, daemon=True)
    t.start()
    return {"ok": True, "started": True, "session_id": session.session_id}


@app.get("/schedule/sessions/{session_id}")
def session_status(session_id: str):
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id}")
    return {**session.to_dict(), "listeners": subscriber_count(session_id)}


@app.delete("/schedule/sessions/active")
def cancel_active_session():
    return {"ok": True, "cancelled": sessions.cancel_active()}


# Calendar

@app.get("/calendar")
def get_calendar(day: Optional[dt.date] = None, employee: str = "all"):
    if day is not None:
        items = calendar.items_for_day(day, employee)
    else:
        items = [i for i in calendar.snapshot() if employee == "all" or employee in i.employees]
    return [i.model_dump(mode="json") for i in items]


@app.get("/calendar/month")
def get_month(year: int, month: int):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=422, detail="month must be 1-12")
    return {"year": year, "month": month,
            "weeks": calendar_view.month_grid(calendar.items_for_month(year, month), year, month)}


@app.get("/calendar/print")
def print_calendar():
    return calendar_view.format_items_for_display(calendar.snapshot())


@app.get("/calendar/export")
def export_calendar():
    return Response(content=calendar_view.export_csv(calendar.snapshot()), media_type="text/csv",
                    headers={"Content-Disposition": "attachment; filename=schedule.csv"})


@app.post("/calendar/items", status_code=201)
def add_calendar_item(req: ManualItemRequest):
    if not req.employees:
        raise ValidationError("employees", "Select an employee for the shift")
    kind = shift_types.coerce(req.shift_type)
    if req.shift_type and kind is None:
        raise ValidationError("shift_type", f"Unknown shift type {req.shift_type!r}")
    start_time, end_time = req.start_time, req.end_time
    if not start_time or not end_time:
        if kind is None:
            raise ValidationError("start_time", "Start and end time are required")
        start_time, end_time = shift_types.default_hours(kind)
    try:
        item = make_manual_item(req.date, start_time, end_time, req.employees, shift_type=kind)
    except ValueError as e:
        raise ValidationError("start_time", str(e))
    return calendar.add_item(item).model_dump(mode="json")


@app.delete("/calendar/items/{item_id}")
def remove_calendar_item(item_id: str):
    if not calendar.remove_item(item_id):
        raise HTTPException(status_code=404, detail=f"No calendar item {item_id}")
    return {"ok": True, "deleted": item_id}


@app.post("/calendar/items/{item_id}/employees")
def add_item_employee(item_id: str, req: EmployeeNameRequest):
    try:
        return calendar.add_employee(item_id, req.name).model_dump(mode="json")
    except KeyError:
        raise HTTPException(status_code=404, detail=f"No calendar item {item_id}")


@app.delete("/calendar/items/{item_id}/employees/{name}")
def remove_item_employee(item_id: str, name: str):
    try:
        return calendar.remove_employee(item_id, name).model_dump(mode="json")
    except KeyError:
        raise HTTPException(status_code=404, detail=f"No calendar item {item_id}")


@app.post("/calendar/items/{item_id}/move")
def move_item(item_id: str, req: MoveRequest):
    try:
        return calendar.move_item(item_id, req.date).model_dump(mode="json")
    except KeyError:
        raise HTTPException(status_code=404, detail=f"No calendar item {item_id}")


@app.delete("/calendar")
def clear_calendar():
    return {"ok": True, "cleared": calendar.clear()}
