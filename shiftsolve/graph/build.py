from typing import Any, Dict, List, Optional
import logging

from langgraph.graph import StateGraph, END

from shiftsolve.config import SOLVER_MAX_ATTEMPTS, SOLVER_POLL_DELAY
from shiftsolve.data.store import CalendarState
from shiftsolve.graph.state import SolveRunState
from shiftsolve.graph.nodes import (
    build_payload_node,
    submit_node,
    poll_node,
    reconcile_node,
    after_submit,
    after_poll,
)
from shiftsolve.services.poller import SchedulingSession, SolveState
from shiftsolve.services.solver_client import SolverClient
from shiftsolve.telemetry import publish_event

logger = logging.getLogger(__name__)


def build_graph(session: SchedulingSession, calendar: CalendarState, client: SolverClient,
                max_attempts: int = SOLVER_MAX_ATTEMPTS, delay: float = SOLVER_POLL_DELAY):
    """Wire payload -> submit -> poll -> reconcile for one scheduling session."""
    graph = StateGraph(SolveRunState)

    def notify(event: Dict[str, Any]) -> None:
        publish_event(session.session_id, event)

    def wrap(name, fn):
        def inner(state: SolveRunState):
            notify({"active_node": name, "message": f"Entering {name}"})
            steps = list(state.get("steps", []))
            steps.append(name)
            state = {**state, "steps": steps}
            return fn(state)
        return inner

    graph.add_node("build_payload", wrap("build_payload", build_payload_node))
    graph.add_node("submit", wrap("submit", lambda s: submit_node(
        s, client=client, session=session, notify=notify)))
    graph.add_node("poll", wrap("poll", lambda s: poll_node(
        s, client=client, session=session, calendar=calendar,
        max_attempts=max_attempts, delay=delay, notify=notify)))
    graph.add_node("reconcile", wrap("reconcile", lambda s: reconcile_node(
        s, session=session, calendar=calendar, notify=notify)))

    graph.set_entry_point("build_payload")
    graph.add_edge("build_payload", "submit")
    graph.add_conditional_edges("submit", after_submit, {"poll": "poll", "end": END})
    graph.add_conditional_edges("poll", after_poll, {"reconcile": "reconcile", "end": END})
    graph.add_edge("reconcile", END)

    return graph.compile()


def run_schedule(session: SchedulingSession, calendar: CalendarState, client: SolverClient,
                 employees: List[Any], shifts: List[Any],
                 max_attempts: int = SOLVER_MAX_ATTEMPTS, delay: float = SOLVER_POLL_DELAY,
                 ) -> SolveRunState:
    """Run one Generate-Schedule request to completion on the calling thread."""
    graph = build_graph(session, calendar, client, max_attempts=max_attempts, delay=delay)
    initial_state: SolveRunState = {
        "status": "INIT",
        "logs": [],
        "steps": [],
        "warnings": [],
        "session_id": session.session_id,
        "employees": list(employees),
        "shifts": list(shifts),
    }
    publish_event(session.session_id, {"message": "Schedule generation started", "active_node": "build_payload"})
    final_state = graph.invoke(initial_state)
    session.log.extend(final_state.get("logs", []))
    logger.info(f"[GRAPH] Session {session.session_id} ended with status {final_state.get('status')}")
    return final_state


def run_schedule_safely(session: SchedulingSession, calendar: CalendarState, client: SolverClient,
                        employees: List[Any], shifts: List[Any],
                        max_attempts: int = SOLVER_MAX_ATTEMPTS, delay: float = SOLVER_POLL_DELAY,
                        ) -> Optional[SolveRunState]:
    """
    Background-thread entry point: an unexpected failure is recorded on the session, never raised.

    The run owns `client` and closes it when it ends.
    """
    try:
        return run_schedule(session, calendar, client, employees, shifts, max_attempts=max_attempts, delay=delay)
    except Exception as e:
        logger.exception(f"[GRAPH] Session {session.session_id} crashed")
        session.error = str(e)
        session.error_kind = type(e).__name__
        session.state = SolveState.FAILED
        publish_event(session.session_id, {"kind": "failed", "message": f"Schedule generation failed: {e}"})
        return None
    finally:
        client.close()
