class SchedulingError(Exception):
    """Base class for every failure surfaced to the dashboard user."""


class ValidationError(SchedulingError):
    """A required form field is missing or invalid; nothing was sent."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class SubmissionError(SchedulingError):
    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class PollError(SchedulingError):
    """Network, HTTP or parse failure while checking job status. Never retried."""


class PollTimeoutError(SchedulingError):
    """The attempt cap was reached while the job was still active.

    Kept distinct from PollError: the job may still be running server-side.
    """

    def __init__(self, job_id: str, attempts: int):
        super().__init__(f"Solver job {job_id} still active after {attempts} attempts")
        self.job_id = job_id
        self.attempts = attempts


class RecordsError(SchedulingError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ReconciliationWarning(UserWarning):
    """A solver assignment that could not be mapped onto a calendar entry."""
