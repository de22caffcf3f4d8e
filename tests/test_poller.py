import httpx
import pytest

from shiftsolve.errors import PollError, PollTimeoutError
from shiftsolve.services.poller import (
    SchedulingSession,
    SessionRegistry,
    SolveState,
    poll_until_done,
    read_feasible,
)

from fakes import FakeSolver

ACTIVE = {"solverStatus": "SOLVING_ACTIVE", "score": {"feasible": True}}
DONE = {"solverStatus": "NOT_SOLVING", "score": {"feasible": True}, "shifts": []}


def session_for(solver: FakeSolver) -> SchedulingSession:
    return SchedulingSession(session_id="t1", job_id=solver.job_id)


def test_always_active_stops_after_max_attempts():
    solver = FakeSolver(statuses=[ACTIVE])
    session = session_for(solver)

    with pytest.raises(PollTimeoutError) as exc:
        poll_until_done(solver.client(), session, max_attempts=7, delay=0)

    assert solver.polls == 7
    assert exc.value.attempts == 7
    assert session.state == SolveState.TIMED_OUT
    assert session.error_kind == "PollTimeoutError"


def test_returns_final_result_when_solver_stops():
    solver = FakeSolver(statuses=[ACTIVE, ACTIVE, DONE])
    session = session_for(solver)

    result = poll_until_done(solver.client(), session, max_attempts=30, delay=0)

    assert result == DONE
    assert solver.polls == 3
    assert session.attempts == 3
    assert session.state == SolveState.DONE


def test_unrecognized_status_keeps_polling():
    solver = FakeSolver(statuses=[{"solverStatus": "WARMING_UP"}, DONE])
    session = session_for(solver)

    assert poll_until_done(solver.client(), session, max_attempts=5, delay=0) == DONE
    assert solver.polls == 2


def test_infeasible_cycles_are_not_handed_on():
    infeasible = {"solverStatus": "SOLVING_ACTIVE", "score": {"feasible": False}}
    solver = FakeSolver(statuses=[infeasible, ACTIVE, DONE])
    seen = []

    poll_until_done(solver.client(), session_for(solver), max_attempts=5, delay=0, on_result=seen.append)

    assert seen == [ACTIVE]


def test_http_error_fails_immediately_without_retry():
    solver = FakeSolver(statuses=[httpx.Response(500, text="boom"), DONE])
    session = session_for(solver)

    with pytest.raises(PollError):
        poll_until_done(solver.client(), session, max_attempts=5, delay=0)

    assert solver.polls == 1
    assert session.state == SolveState.FAILED
    assert session.error_kind == "PollError"


def test_unparseable_status_body_is_a_poll_error():
    solver = FakeSolver(statuses=[httpx.Response(200, text="<html>")])
    with pytest.raises(PollError):
        poll_until_done(solver.client(), session_for(solver), max_attempts=5, delay=0)


def test_cancelled_session_stops_polling():
    solver = FakeSolver(statuses=[ACTIVE])
    session = session_for(solver)

    def cancel_on_second(event):
        if event["attempt"] == 2:
            session.cancel()

    result = poll_until_done(solver.client(), session, max_attempts=10, delay=0, notify=cancel_on_second)

    assert result is None
    assert solver.polls == 2
    assert session.state == SolveState.CANCELLED


def test_session_without_job_id_is_rejected():
    with pytest.raises(ValueError):
        poll_until_done(FakeSolver().client(), SchedulingSession(session_id="x"), max_attempts=1, delay=0)


def test_read_feasible_variants():
    assert read_feasible({"score": {"feasible": True}}) is True
    assert read_feasible({"score": {"feasible": False}}) is False
    assert read_feasible({"score": "0hard/-12soft"}) is True
    assert read_feasible({"score": "-1hard/0soft"}) is False
    assert read_feasible({}) is None


def test_new_session_cancels_the_one_in_flight():
    registry = SessionRegistry()
    first = registry.start()
    first.state = SolveState.ACTIVE
    second = registry.start()

    assert first.cancelled
    assert first.state == SolveState.CANCELLED
    assert not second.cancelled
    assert registry.active() is second
    assert registry.get(first.session_id) is first


def test_finished_session_is_not_cancelled_by_a_new_one():
    registry = SessionRegistry()
    first = registry.start()
    first.state = SolveState.DONE
    registry.start()
    assert not first.cancelled
    assert first.state == SolveState.DONE


def test_registry_drops_oldest_finished_sessions():
    registry = SessionRegistry(max_sessions=3)
    started = []
    for _ in range(5):
        session = registry.start()
        session.state = SolveState.DONE
        started.append(session)

    assert len(registry) == 3
    assert registry.get(started[0].session_id) is None
    assert registry.get(started[1].session_id) is None
    assert registry.active() is started[-1]


def test_registry_prunes_the_cancelled_predecessor():
    registry = SessionRegistry(max_sessions=1)
    first = registry.start()
    second = registry.start()
    # the first was cancelled and is now terminal, so it can go
    assert first.cancelled
    assert registry.get(first.session_id) is None
    assert registry.get(second.session_id) is second
