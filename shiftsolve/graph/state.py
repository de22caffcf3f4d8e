from typing import TypedDict, Any, Dict, List, Optional


class SolveRunState(TypedDict, total=False):
    # Lifecycle
    status: str  # INIT, PAYLOAD_BUILT, SUBMITTED, DONE, MERGED, INFEASIBLE, TIMED_OUT, FAILED, CANCELLED
    logs: List[str]
    steps: List[str]
    session_id: str

    # Inputs (selected records, models or row dicts)
    employees: List[Any]
    shifts: List[Any]

    # Solver exchange
    payload: Dict[str, Any]
    job_id: Optional[str]
    result: Optional[Dict[str, Any]]

    # Outcome
    merged: int
    warnings: List[str]
    error: Optional[str]
    error_kind: Optional[str]
