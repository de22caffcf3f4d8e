import httpx
import pytest

from shiftsolve.errors import PollError, SubmissionError
from shiftsolve.services.solver_client import SolverClient

from fakes import FakeSolver


def test_submit_returns_trimmed_job_id():
    solver = FakeSolver(submit_body="  abc123\n")
    job_id = solver.client().submit({"employees": [{"name": "Ann"}], "shifts": []})

    assert job_id == "abc123"
    assert solver.submitted == [{"employees": [{"name": "Ann"}], "shifts": []}]


def test_submit_surfaces_json_detail_verbatim():
    solver = FakeSolver(submit_status=400, submit_body='{"detail": "Shift s9 has no required skill"}')

    with pytest.raises(SubmissionError) as exc:
        solver.client().submit({"employees": [], "shifts": []})

    assert exc.value.status_code == 400
    assert exc.value.detail == "Shift s9 has no required skill"


def test_submit_surfaces_raw_text_error():
    solver = FakeSolver(submit_status=503, submit_body="Service Unavailable")
    with pytest.raises(SubmissionError) as exc:
        solver.client().submit({"employees": [], "shifts": []})
    assert exc.value.detail == "Service Unavailable"


def test_submit_rejects_blank_job_id():
    solver = FakeSolver(submit_body="   \n")
    with pytest.raises(SubmissionError):
        solver.client().submit({"employees": [], "shifts": []})


def test_submit_transport_failure_is_a_submission_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = SolverClient(base_url="http://solver.test", client=httpx.Client(transport=httpx.MockTransport(refuse)))
    with pytest.raises(SubmissionError):
        client.submit({"employees": [], "shifts": []})


def test_get_status_reads_json():
    solver = FakeSolver(statuses=[{"solverStatus": "SOLVING_ACTIVE"}])
    assert solver.client().get_status("abc123") == {"solverStatus": "SOLVING_ACTIVE"}


def test_get_status_unknown_job_is_a_poll_error():
    with pytest.raises(PollError):
        FakeSolver().client().get_status("nope")
