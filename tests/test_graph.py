import pytest

from shiftsolve.data.models import normalize_employee_row, normalize_shift_row
from shiftsolve.data.store import CalendarState
from shiftsolve.graph.build import run_schedule, run_schedule_safely
from shiftsolve.services.poller import SchedulingSession, SolveState

from fakes import FakeSolver

ACTIVE = {"solverStatus": "SOLVING_ACTIVE", "score": {"feasible": True}}


def final_body(feasible=True):
    return {
        "solverStatus": "NOT_SOLVING",
        "score": {"feasible": feasible},
        "shifts": [
            {"id": "s1", "start": "2024-06-03T09:00:00", "end": "2024-06-03T13:00:00",
             "employee": {"name": "Ann"}},
            {"id": "s2", "start": "2024-06-03T18:00:00", "end": "2024-06-03T21:00:00", "employee": None},
        ],
    }


@pytest.fixture
def records(employee_rows, shift_rows):
    return ([normalize_employee_row(r) for r in employee_rows],
            [normalize_shift_row(r) for r in shift_rows])


def run(solver, calendar, records, session=None, max_attempts=30):
    employees, shifts = records
    session = session or SchedulingSession(session_id="g1")
    state = run_schedule(session, calendar, solver.client(), employees, shifts,
                         max_attempts=max_attempts, delay=0)
    return session, state


def test_generate_schedule_end_to_end(calendar, records):
    solver = FakeSolver(statuses=[ACTIVE, ACTIVE, final_body()])
    session, state = run(solver, calendar, records)

    assert state["status"] == "MERGED"
    assert state["steps"] == ["build_payload", "submit", "poll", "reconcile"]
    assert solver.polls == 3
    assert session.job_id == "abc123"
    assert session.state == SolveState.DONE

    items = calendar.snapshot()
    assert len(items) == 1
    assert items[0].id == "s1"
    assert items[0].title == "Morning-Afternoon Shift"
    assert items[0].color == "teal"
    assert items[0].employees == ["Ann"]
    assert len(state["warnings"]) == 1

    sent = solver.submitted[0]
    assert [e["name"] for e in sent["employees"]] == ["Ann", "Ben"]
    assert [s["id"] for s in sent["shifts"]] == ["s1", "s2"]
    assert any("Merged 1 schedule items" in line for line in session.log)


def test_submission_failure_never_polls(calendar, records):
    solver = FakeSolver(submit_status=400, submit_body='{"detail": "no shifts"}')
    session, state = run(solver, calendar, records)

    assert state["status"] == "FAILED"
    assert state["error_kind"] == "SubmissionError"
    assert state["steps"] == ["build_payload", "submit"]
    assert solver.polls == 0
    assert session.state == SolveState.FAILED
    assert len(calendar) == 0


def test_timeout_leaves_calendar_alone(calendar, records):
    solver = FakeSolver(statuses=[{"solverStatus": "SOLVING_ACTIVE"}])
    session, state = run(solver, calendar, records, max_attempts=4)

    assert state["status"] == "TIMED_OUT"
    assert state["error_kind"] == "PollTimeoutError"
    assert solver.polls == 4
    assert session.state == SolveState.TIMED_OUT
    assert len(calendar) == 0


def test_final_infeasible_result_is_not_merged(calendar, records):
    solver = FakeSolver(statuses=[final_body(feasible=False)])
    session, state = run(solver, calendar, records)

    assert state["status"] == "INFEASIBLE"
    assert session.state == SolveState.DONE
    assert len(calendar) == 0


def test_intermediate_feasible_result_is_merged(calendar, records):
    partial = {**final_body(), "solverStatus": "SOLVING_ACTIVE"}
    solver = FakeSolver(statuses=[partial, {"solverStatus": "SOLVING_ACTIVE"}])
    session, state = run(solver, calendar, records, max_attempts=2)

    # The job timed out, but the feasible intermediate solution is already on the calendar
    assert state["status"] == "TIMED_OUT"
    assert [i.id for i in calendar.snapshot()] == ["s1"]


def test_cancelled_session_submits_nothing(calendar, records):
    solver = FakeSolver(statuses=[final_body()])
    session = SchedulingSession(session_id="stale")
    session.cancel()
    _, state = run(solver, calendar, records, session=session)

    assert state["status"] == "CANCELLED"
    assert solver.submitted == []
    assert len(calendar) == 0


def test_unexpected_crash_is_recorded_on_the_session(calendar, records):
    class Exploding:
        closed = False

        def submit(self, payload):
            raise RuntimeError("kaboom")

        def close(self):
            self.closed = True

    session = SchedulingSession(session_id="boom")
    employees, shifts = records
    client = Exploding()
    assert run_schedule_safely(session, calendar, client, employees, shifts, delay=0) is None
    assert client.closed
    assert session.state == SolveState.FAILED
    assert session.error_kind == "RuntimeError"


def test_mixed_timezone_shift_falls_back_to_submitted_times(calendar, records):
    body = final_body()
    body["shifts"][0]["start"] = "2024-06-03T09:00:00Z"
    body["shifts"][1]["employee"] = {"name": "Ben"}
    solver = FakeSolver(statuses=[body])
    session, state = run(solver, calendar, records)

    assert state["status"] == "MERGED"
    assert sorted(i.id for i in calendar.snapshot()) == ["s1", "s2"]
    assert calendar.get("s1").start_time == "09:00"


def test_mixed_timezone_unknown_shift_is_skipped_without_failing(calendar):
    body = {"solverStatus": "NOT_SOLVING", "shifts": [
        {"id": "x1", "start": "2024-06-03T09:00:00Z", "end": "2024-06-03T13:00:00", "employee": {"name": "Ann"}},
        {"id": "x2", "start": "2024-06-03T18:00:00", "end": "2024-06-03T21:00:00", "employee": {"name": "Ben"}},
    ]}
    solver = FakeSolver(statuses=[body])
    session = SchedulingSession(session_id="tz")
    state = run_schedule_safely(session, calendar, solver.client(), [{"name": "Ann"}], [], delay=0)

    assert state["status"] == "MERGED"
    assert session.state == SolveState.DONE
    assert [i.id for i in calendar.snapshot()] == ["x2"]


def test_safe_run_closes_the_solver_client(calendar, records):
    solver = FakeSolver(statuses=[final_body()])
    client = solver.client()
    employees, shifts = records
    run_schedule_safely(SchedulingSession(session_id="c1"), calendar, client, employees, shifts, delay=0)
    assert client._client.is_closed


def test_cancel_during_merge_leaves_calendar_untouched(records):
    session = SchedulingSession(session_id="late")

    class CancelOnMerge(CalendarState):
        def merge(self, items, guard=None):
            session.cancel()
            return super().merge(items, guard=guard)

    late_calendar = CancelOnMerge()
    solver = FakeSolver(statuses=[final_body()])
    employees, shifts = records
    state = run_schedule(session, late_calendar, solver.client(), employees, shifts, delay=0)

    assert len(late_calendar) == 0
    assert state["status"] == "CANCELLED"
