from typing import Any, Dict, Optional
import logging

import httpx

from shiftsolve.config import SOLVER_BASE_URL, HTTP_TIMEOUT
from shiftsolve.errors import PollError, SubmissionError

logger = logging.getLogger(__name__)

SOLVING_ACTIVE = "SOLVING_ACTIVE"
NOT_SOLVING = "NOT_SOLVING"


def _error_detail(response: httpx.Response) -> str:
    """Error bodies are JSON with a `detail` field, or raw text."""
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and data.get("detail") is not None:
        return str(data["detail"])
    return response.text


class SolverClient:
    """Talks to the external schedule solver: submit a job, read its status."""

    def __init__(self, base_url: str = SOLVER_BASE_URL, timeout: float = HTTP_TIMEOUT,
                 client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "Accept": "application/json, text/plain"}

    def submit(self, payload: Dict[str, Any]) -> str:
        url = f"{self.base_url}/schedules"
        try:
            r = self._client.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"[SOLVER] Submit transport error: {e}")
            raise SubmissionError(f"Could not reach solver: {e}") from e
        if not r.is_success:
            detail = _error_detail(r)
            logger.error(f"[SOLVER] Submit failed: {r.status_code} - {detail}")
            raise SubmissionError(f"Solver rejected the schedule request ({r.status_code}): {detail}",
                                  status_code=r.status_code, detail=detail)
        job_id = r.text.strip()
        if not job_id:
            logger.error("[SOLVER] Submit returned an empty job id")
            raise SubmissionError("Solver returned an empty job id", status_code=r.status_code)
        logger.info(f"[SOLVER] Submitted {len(payload.get('employees', []))} employees, "
                    f"{len(payload.get('shifts', []))} shifts -> job {job_id}")
        return job_id

    def get_status(self, job_id: str) -> Dict[str, Any]:
        url = f"{self.base_url}/schedules/{job_id}"
        try:
            r = self._client.get(url, headers=self._headers())
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[SOLVER] Status HTTP error: {e.response.status_code} - {e.response.text}")
            raise PollError(f"Solver status error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"[SOLVER] Status transport error: {e}")
            raise PollError(f"Could not reach solver: {e}") from e
        except ValueError as e:
            logger.error(f"[SOLVER] Status body is not JSON: {e}")
            raise PollError("Solver returned an unreadable status") from e
        if not isinstance(data, dict):
            raise PollError("Solver returned an unexpected status shape")
        return data

    def close(self) -> None:
        self._client.close()
