from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging
import re
import threading
import time
import uuid

from shiftsolve.config import SOLVER_MAX_ATTEMPTS, SOLVER_POLL_DELAY
from shiftsolve.errors import PollError, PollTimeoutError
from shiftsolve.services.solver_client import NOT_SOLVING, SOLVING_ACTIVE, SolverClient

logger = logging.getLogger(__name__)

Notify = Callable[[Dict[str, Any]], None]


class SolveState(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    DONE = "DONE"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATES = {SolveState.DONE, SolveState.TIMED_OUT, SolveState.FAILED, SolveState.CANCELLED}

MAX_SESSIONS = 50


@dataclass
class SchedulingSession:
    """One Generate-Schedule invocation: its job id, attempt counter and cancel flag."""
    session_id: str
    job_id: Optional[str] = None
    state: SolveState = SolveState.PENDING
    attempts: int = 0
    feasible: Optional[bool] = None
    last_result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    merged: int = 0
    log: List[str] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()
        if self.state not in TERMINAL_STATES:
            self.state = SolveState.CANCELLED

    def note(self, message: str) -> None:
        self.log.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "job_id": self.job_id,
            "state": self.state.value,
            "attempts": self.attempts,
            "feasible": self.feasible,
            "merged": self.merged,
            "error": self.error,
            "error_kind": self.error_kind,
            "log": list(self.log),
        }


_HARD_SCORE = re.compile(r"(?:^|/)(-?\d+)hard")


def read_feasible(result: Dict[str, Any]) -> Optional[bool]:
    """`score.feasible` when present; a '<n>hard/<m>soft' score string is feasible when n >= 0."""
    score = result.get("score")
    if isinstance(score, dict):
        value = score.get("feasible")
        return value if isinstance(value, bool) else None
    if isinstance(score, str):
        m = _HARD_SCORE.search(score)
        if m:
            return int(m.group(1)) >= 0
    return None


def poll_until_done(client: SolverClient, session: SchedulingSession,
                    max_attempts: int = SOLVER_MAX_ATTEMPTS, delay: float = SOLVER_POLL_DELAY,
                    on_result: Optional[Callable[[Dict[str, Any]], None]] = None,
                    notify: Optional[Notify] = None) -> Optional[Dict[str, Any]]:
    """
    Poll the job until the solver stops, strictly one request at a time.

    Returns the final status body once the solver reports NOT_SOLVING, or None
    when the session was cancelled. Raises PollError on the first failed check
    and PollTimeoutError once `max_attempts` polls all came back active.
    Feasible intermediate results are handed to `on_result`; an explicitly
    infeasible cycle is skipped but polling continues.
    """
    if not session.job_id:
        raise ValueError("Session has no job id to poll")
    notify = notify or (lambda event: None)

    for attempt in range(1, max_attempts + 1):
        if session.cancelled:
            session.state = SolveState.CANCELLED
            logger.info(f"[POLL] Session {session.session_id} cancelled before attempt {attempt}")
            return None

        session.attempts = attempt
        try:
            result = client.get_status(session.job_id)
        except PollError as e:
            session.state = SolveState.FAILED
            session.error = str(e)
            session.error_kind = "PollError"
            raise

        status = str(result.get("solverStatus") or "")
        feasible = read_feasible(result)
        session.feasible = feasible
        session.last_result = result
        notify({"message": f"Poll {attempt}/{max_attempts}: {status or 'unknown'}",
                "attempt": attempt, "solver_status": status, "feasible": feasible})

        if status == NOT_SOLVING:
            session.state = SolveState.DONE
            logger.info(f"[POLL] Job {session.job_id} finished after {attempt} attempts (feasible={feasible})")
            return result

        if status != SOLVING_ACTIVE:
            logger.warning(f"[POLL] Unrecognized solver status {status!r} for job {session.job_id}; still polling")
        session.state = SolveState.ACTIVE

        if feasible is False:
            logger.info(f"[POLL] Job {session.job_id} infeasible so far; not merging attempt {attempt}")
        elif on_result is not None and not session.cancelled:
            on_result(result)

        if attempt < max_attempts and session.cancel_event.wait(delay):
            session.state = SolveState.CANCELLED
            logger.info(f"[POLL] Session {session.session_id} cancelled while waiting")
            return None

    session.state = SolveState.TIMED_OUT
    session.error = f"Solver still active after {max_attempts} attempts"
    session.error_kind = "PollTimeoutError"
    raise PollTimeoutError(session.job_id, max_attempts)


class SessionRegistry:
    """Tracks sessions; starting a new one cancels whatever is still in flight."""

    def __init__(self, max_sessions: int = MAX_SESSIONS):
        self.max_sessions = max_sessions
        self._lock = threading.Lock()
        self._sessions: Dict[str, SchedulingSession] = {}
        self._active: Optional[str] = None

    def start(self, session_id: Optional[str] = None) -> SchedulingSession:
        session = SchedulingSession(session_id=session_id or uuid.uuid4().hex[:12])
        with self._lock:
            previous = self._sessions.get(self._active) if self._active else None
            if previous is not None and previous.state not in TERMINAL_STATES:
                logger.info(f"[POLL] Cancelling stale session {previous.session_id}")
                previous.cancel()
            self._sessions[session.session_id] = session
            self._active = session.session_id
            self._prune()
        return session

    def _prune(self) -> None:
        # Oldest finished sessions go first; the active one is always kept
        finished = sorted(
            (s for s in self._sessions.values()
             if s.state in TERMINAL_STATES and s.session_id != self._active),
            key=lambda s: s.created_at,
        )
        while len(self._sessions) > self.max_sessions and finished:
            self._sessions.pop(finished.pop(0).session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get(self, session_id: str) -> Optional[SchedulingSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def active(self) -> Optional[SchedulingSession]:
        with self._lock:
            return self._sessions.get(self._active) if self._active else None

    def cancel_active(self) -> bool:
        with self._lock:
            session = self._sessions.get(self._active) if self._active else None
        if session is None or session.state in TERMINAL_STATES:
            return False
        session.cancel()
        return True
