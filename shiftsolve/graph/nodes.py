from typing import Any, Callable, Dict, List, Tuple
import logging

from shiftsolve.data.store import CalendarState
from shiftsolve.errors import PollError, PollTimeoutError, SubmissionError
from shiftsolve.graph.state import SolveRunState
from shiftsolve.services import payload as payload_svc
from shiftsolve.services import reconcile as reconcile_svc
from shiftsolve.services.poller import SchedulingSession, SolveState, poll_until_done
from shiftsolve.services.solver_client import SolverClient

logger = logging.getLogger(__name__)

Notify = Callable[[Dict[str, Any]], None]


def log(state: SolveRunState, message: str) -> None:
    state.setdefault("logs", []).append(message)


def _known_shifts(state: SolveRunState) -> Dict[str, Dict[str, Any]]:
    return {s["id"]: s for s in (state.get("payload") or {}).get("shifts", []) if s.get("id")}


def _apply(result: Dict[str, Any], state: SolveRunState, calendar: CalendarState,
           session: SchedulingSession) -> Tuple[int, List[str]]:
    """Reconcile one result and merge it in a single step. A stale session never writes."""
    items, warnings = reconcile_svc.reconcile(result, known_shifts=_known_shifts(state))
    merged = calendar.merge(items, guard=lambda: not session.cancelled)
    if merged or not session.cancelled:
        session.merged = merged
    return merged, [str(w) for w in warnings]


def build_payload_node(state: SolveRunState) -> SolveRunState:
    payload = payload_svc.build_payload(state.get("employees", []), state.get("shifts", []))
    new_state: SolveRunState = {**state, "status": "PAYLOAD_BUILT", "payload": payload}
    log(new_state, f"Built payload. employees={len(payload['employees'])}, shifts={len(payload['shifts'])}")
    return new_state


def submit_node(state: SolveRunState, *, client: SolverClient, session: SchedulingSession,
                notify: Notify) -> SolveRunState:
    if session.cancelled:
        new_state: SolveRunState = {**state, "status": "CANCELLED"}
        log(new_state, "Session cancelled before submission.")
        return new_state
    try:
        job_id = client.submit(state.get("payload", {}))
    except SubmissionError as e:
        session.state = SolveState.FAILED
        session.error = str(e)
        session.error_kind = "SubmissionError"
        notify({"kind": "failed", "message": str(e), "error_kind": "SubmissionError"})
        new_state = {**state, "status": "FAILED", "error": str(e), "error_kind": "SubmissionError"}
        log(new_state, f"Submission failed: {e}")
        return new_state

    session.job_id = job_id
    notify({"kind": "submitted", "message": f"Schedule job {job_id} submitted", "job_id": job_id})
    new_state = {**state, "status": "SUBMITTED", "job_id": job_id}
    log(new_state, f"Submitted schedule job {job_id}.")
    return new_state


def poll_node(state: SolveRunState, *, client: SolverClient, session: SchedulingSession,
              calendar: CalendarState, max_attempts: int, delay: float, notify: Notify) -> SolveRunState:
    warnings: List[str] = list(state.get("warnings", []))

    def on_result(result: Dict[str, Any]) -> None:
        try:
            merged, found = _apply(result, state, calendar, session)
        except ValueError as e:
            logger.warning(f"[POLL] Ignoring unreadable intermediate result: {e}")
            return
        warnings.extend(w for w in found if w not in warnings)
        if merged:
            notify({"kind": "progress", "message": f"Intermediate solution: {merged} shifts"})

    try:
        result = poll_until_done(client, session, max_attempts=max_attempts, delay=delay,
                                 on_result=on_result, notify=notify)
    except PollTimeoutError as e:
        notify({"kind": "timeout", "message": f"{e}. The job may still be running on the solver.",
                "error_kind": "PollTimeoutError"})
        new_state: SolveRunState = {**state, "status": "TIMED_OUT", "error": str(e),
                                    "error_kind": "PollTimeoutError", "warnings": warnings}
        log(new_state, f"Polling timed out after {e.attempts} attempts.")
        return new_state
    except PollError as e:
        notify({"kind": "failed", "message": str(e), "error_kind": "PollError"})
        new_state = {**state, "status": "FAILED", "error": str(e), "error_kind": "PollError",
                     "warnings": warnings}
        log(new_state, f"Polling failed: {e}")
        return new_state

    if result is None:
        notify({"kind": "cancelled", "message": "Superseded by a newer schedule request"})
        new_state = {**state, "status": "CANCELLED", "warnings": warnings}
        log(new_state, "Polling cancelled.")
        return new_state

    new_state = {**state, "status": "DONE", "result": result, "warnings": warnings}
    log(new_state, f"Solver finished after {session.attempts} polls.")
    return new_state


def reconcile_node(state: SolveRunState, *, session: SchedulingSession, calendar: CalendarState,
                   notify: Notify) -> SolveRunState:
    if session.cancelled:
        session.state = SolveState.CANCELLED
        notify({"kind": "cancelled", "message": "Superseded by a newer schedule request"})
        new_state: SolveRunState = {**state, "status": "CANCELLED"}
        log(new_state, "Session cancelled; result discarded.")
        return new_state

    if session.feasible is False:
        notify({"kind": "infeasible", "message": "Solver finished without a feasible schedule"})
        new_state = {**state, "status": "INFEASIBLE", "merged": 0}
        log(new_state, "Final solution infeasible; calendar left unchanged.")
        return new_state

    try:
        merged, found = _apply(state.get("result") or {}, state, calendar, session)
    except ValueError as e:
        session.state = SolveState.FAILED
        session.error = f"Unreadable solver result: {e}"
        session.error_kind = "PollError"
        notify({"kind": "failed", "message": session.error, "error_kind": "PollError"})
        new_state = {**state, "status": "FAILED", "error": session.error, "error_kind": "PollError"}
        log(new_state, session.error)
        return new_state

    if session.cancelled and not merged:
        session.state = SolveState.CANCELLED
        notify({"kind": "cancelled", "message": "Superseded by a newer schedule request"})
        new_state = {**state, "status": "CANCELLED", "merged": 0}
        log(new_state, "Session cancelled while merging; result discarded.")
        return new_state

    warnings = list(state.get("warnings", []))
    warnings.extend(w for w in found if w not in warnings)
    notify({"kind": "finished", "message": f"Schedule ready: {merged} shifts placed", "merged": merged,
            "skipped": len(found)})
    new_state = {**state, "status": "MERGED", "merged": merged, "warnings": warnings}
    log(new_state, f"Merged {merged} schedule items ({len(found)} skipped).")
    return new_state


def after_submit(state: SolveRunState) -> str:
    return "poll" if state.get("status") == "SUBMITTED" else "end"


def after_poll(state: SolveRunState) -> str:
    return "reconcile" if state.get("status") == "DONE" else "end"
