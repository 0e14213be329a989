import asyncio
from io import BytesIO

import pytest
from openpyxl import load_workbook

from app.scraper import config
from app.scraper.jobs import JobStatus
from app.scraper.run import run_job
from tests.fake_portal import FakeSession, _reload_main_module, animal_row, linear_pages, no_sleep, session_factory_for

VALID = {"fromDate": "01/01/2024", "toDate": "15/01/2024", "districtName": "PUNE CITY"}


class _RecordingRunner:
    def __init__(self) -> None:
        self.submitted: list[str] = []

    def submit(self, job_id, params):
        self.submitted.append(job_id)


class _InlineRunner:
    """Runs each job to completion inside the request against a fake portal."""

    def __init__(self, tracker, session: FakeSession) -> None:
        self.tracker = tracker
        self.session = session

    def submit(self, job_id, params):
        return asyncio.run(
            run_job(
                job_id,
                params,
                tracker=self.tracker,
                session_factory=session_factory_for(self.session),
                sleep=no_sleep,
            )
        )


@pytest.fixture()
def main(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)
    monkeypatch.setattr(config, "DOWNLOAD_TIMEOUT_SECONDS", 5)
    module = _reload_main_module()
    monkeypatch.setattr(module, "RUNNER", _RecordingRunner())
    return module


def test_start_job_returns_job_id_and_schedules_it(main) -> None:
    client = main.app.test_client()

    resp = client.post("/start-fir-job", json=VALID)

    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["jobId"].startswith("job_")
    assert payload["status"] == "started"
    assert main.RUNNER.submitted == [payload["jobId"]]
    job = main.TRACKER.get(payload["jobId"])
    assert job.requester == "127.0.0.1"
    assert job.params.district_code == "19393"


def test_second_job_from_same_requester_is_rejected(main) -> None:
    client = main.app.test_client()
    assert client.post("/start-fir-job", json=VALID).status_code == 200

    resp = client.post("/start-fir-job", json=VALID)

    assert resp.status_code == 429
    assert resp.get_json()["code"] == "active_job_exists"
    assert len(main.RUNNER.submitted) == 1


@pytest.mark.parametrize(
    "body, code",
    [
        ({}, "missing_fields"),
        ([{"fromDate": "01/01/2024"}], "invalid_payload"),
        ("x", "invalid_payload"),
        (5, "invalid_payload"),
        ({**VALID, "fromDate": "2024/01/01"}, "invalid_date_format"),
        ({**VALID, "fromDate": "16/01/2024"}, "invalid_date_range"),
        ({**VALID, "toDate": "01/04/2024"}, "date_range_too_long"),
        ({**VALID, "districtName": "Gotham"}, "unknown_district"),
    ],
)
def test_invalid_submissions_are_rejected(main, body, code) -> None:
    resp = main.app.test_client().post("/start-fir-job", json=body)

    assert resp.status_code == 400
    assert resp.get_json()["code"] == code
    assert main.RUNNER.submitted == []
    assert main.TRACKER.list_jobs() == []


def test_form_encoded_submission_is_accepted(main) -> None:
    resp = main.app.test_client().post("/start-fir-job", data=VALID)

    assert resp.status_code == 200


def test_proxy_header_used_only_when_trusted(main, monkeypatch: pytest.MonkeyPatch) -> None:
    client = main.app.test_client()
    monkeypatch.setattr(config, "TRUST_PROXY_HEADERS", True)

    resp = client.post("/start-fir-job", json=VALID, headers={"X-Forwarded-For": "203.0.113.9"})

    job = main.TRACKER.get(resp.get_json()["jobId"])
    assert job.requester == "203.0.113.9"


def test_status_of_unknown_job_is_404(main) -> None:
    resp = main.app.test_client().get("/job-status/job_missing")

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Job not found"


def test_download_before_completion_is_rejected(main) -> None:
    client = main.app.test_client()
    job_id = client.post("/start-fir-job", json=VALID).get_json()["jobId"]

    assert client.get(f"/download-job-zip/{job_id}").status_code == 400
    assert client.get("/download-job-zip/job_missing").status_code == 404


def test_completed_job_end_to_end(main, monkeypatch: pytest.MonkeyPatch) -> None:
    session = FakeSession(linear_pages([animal_row(1), animal_row(2)]))
    monkeypatch.setattr(main, "RUNNER", _InlineRunner(main.TRACKER, session))
    client = main.app.test_client()

    job_id = client.post("/start-fir-job", json=VALID).get_json()["jobId"]

    status = client.get(f"/job-status/{job_id}").get_json()
    assert status["status"] == "completed"
    assert status["totalDownloaded"] == 2
    assert status["endReason"] == "exhausted"
    assert status["downloadConfig"] == "configured_via_primary"
    assert status["completedAt"] is not None

    resp = client.get(f"/download-job-zip/{job_id}")
    assert resp.status_code == 200
    assert resp.mimetype == "application/zip"
    disposition = resp.headers["Content-Disposition"]
    assert "animal_protection_firs_PUNE_CITY_01-01-2024_to_15-01-2024.zip" in disposition
    resp.close()
    assert client.get(f"/job-status/{job_id}").get_json()["downloadCount"] == 1

    report = client.get(f"/job-report/{job_id}")
    assert report.status_code == 200
    workbook = load_workbook(BytesIO(report.data))
    assert {"All", "Downloaded", "Skipped", "Summary_Status", "Job"} <= set(workbook.sheetnames)

    # A finished job no longer blocks its requester.
    assert main.TRACKER.get(job_id).status is JobStatus.COMPLETED
    assert client.post("/start-fir-job", json=VALID).status_code == 200


def test_download_after_cleanup_is_404(main, monkeypatch: pytest.MonkeyPatch) -> None:
    session = FakeSession(linear_pages([animal_row(1)]))
    monkeypatch.setattr(main, "RUNNER", _InlineRunner(main.TRACKER, session))
    client = main.app.test_client()
    job_id = client.post("/start-fir-job", json=VALID).get_json()["jobId"]

    main.TRACKER.get(job_id).archive_path.unlink()

    assert client.get(f"/download-job-zip/{job_id}").status_code == 404


def test_jobs_listing(main) -> None:
    client = main.app.test_client()
    job_id = client.post("/start-fir-job", json=VALID).get_json()["jobId"]

    listing = client.get("/jobs").get_json()

    assert [entry["id"] for entry in listing] == [job_id]
    assert listing[0]["requester"] == "127.0.0.1"
    assert listing[0]["params"]["districtName"] == "PUNE CITY"


def test_job_report_unknown_job(main) -> None:
    assert main.app.test_client().get("/job-report/job_missing").status_code == 404
