from __future__ import annotations

import os
import time

from flask import Flask, Response, jsonify, request, send_file

from app.scraper import config
from app.scraper.config_validation import validate_runtime_config
from app.scraper.date_utils import filename_date
from app.scraper.error_codes import JobRequestError
from app.scraper.export_excel import export_job_report, report_filename
from app.scraper.healthcheck import run_health_checks
from app.scraper.jobs import JobStatus, JobTracker
from app.scraper.logging_utils import _scraper_event
from app.scraper.utils import ensure_dirs, log_line
from app.scraper.validation import validate_job_request
from app.scraper.worker import JobRunner

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-change-me")

# Initialise storage paths on import so WSGI entrypoints also have the
# expected layout ready.
ensure_dirs()

STARTED_AT = time.time()
TRACKER = JobTracker()
RUNNER = JobRunner(TRACKER)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _requester_identity() -> str:
    """Return the caller identity used for the one-active-job limit."""

    if config.TRUST_PROXY_HEADERS and request.access_route:
        return request.access_route[0]
    return request.remote_addr or "unknown"


def _archive_download_name(params) -> str:
    district = params.district_name.replace(" ", "_")
    return (
        f"animal_protection_firs_{district}_"
        f"{filename_date(params.from_date)}_to_{filename_date(params.to_date)}.zip"
    )


@app.before_request
def log_request() -> None:
    log_line(f"{request.method} {request.path} from {_requester_identity()}")


@app.post("/start-fir-job")
def start_fir_job() -> Response:
    """Validate a submission, admit it and start the extraction in the background."""

    payload = request.get_json(silent=True)
    if payload is None:
        payload = request.form.to_dict()

    try:
        validate_runtime_config("ui")
    except ValueError as exc:
        return jsonify({"error": "Server configuration is invalid.", "code": "config_invalid", "details": str(exc)}), 500

    requester = _requester_identity()
    try:
        params = validate_job_request(payload)
        job = TRACKER.create_job(
            params,
            requester=requester,
            user_agent=request.headers.get("User-Agent"),
        )
    except JobRequestError as exc:
        log_line(f"Rejected job request from {requester}: {exc} ({exc.error_code})")
        return jsonify({"error": str(exc), "code": exc.error_code}), exc.http_status

    RUNNER.submit(job.job_id, params)

    return jsonify(
        {
            "jobId": job.job_id,
            "status": job.status.value,
            "message": "FIR extraction job started successfully. Use the jobId to check status.",
            "estimatedTime": "This process typically takes 5-30 minutes depending on the number of records.",
        }
    )


@app.get("/job-status/<job_id>")
def job_status(job_id: str) -> Response:
    job = TRACKER.get(job_id)
    if job is None:
        return jsonify({"error": "Job not found"}), 404
    return jsonify(job.to_status_dict())


@app.get("/download-job-zip/<job_id>")
def download_job_zip(job_id: str) -> Response:
    """Serve a completed job's archive, named after the job's parameters."""

    job = TRACKER.get(job_id)
    if job is None:
        return Response("Job not found.", status=404)
    if job.status is not JobStatus.COMPLETED:
        return Response("Job not completed yet.", status=400)
    if job.archive_path is None or not job.archive_path.is_file():
        return Response("ZIP file not found.", status=404)

    response = send_file(
        job.archive_path,
        mimetype="application/zip",
        as_attachment=True,
        download_name=_archive_download_name(job.params),
    )
    TRACKER.record_fetch(job_id)
    _scraper_event("fetch", job_id=job_id, archive=str(job.archive_path))
    return response


@app.get("/job-report/<job_id>")
def job_report(job_id: str) -> Response:
    job = TRACKER.get(job_id)
    if job is None:
        return jsonify({"error": "Job not found"}), 404
    buffer = export_job_report(job)
    return send_file(
        buffer,
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=report_filename(job),
    )


@app.get("/jobs")
def list_jobs() -> Response:
    """Return summaries of every tracked job (admin/debug)."""

    return jsonify([job.to_summary_dict() for job in TRACKER.list_jobs()])


@app.get("/health")
def health() -> Response:
    """Return a JSON health summary for configuration, filesystem and jobs."""

    result = run_health_checks(entrypoint="ui", tracker=TRACKER)
    status = 200 if result.ok else 503
    return (
        jsonify(
            {
                "ok": result.ok,
                "status": "healthy" if result.ok else "unhealthy",
                "uptime": round(time.time() - STARTED_AT, 1),
                "checks": result.checks,
            }
        ),
        status,
    )


if __name__ == "__main__":
    # Direct invocation is primarily for local development; directories are
    # initialised above during module import.
    app.run(host="0.0.0.0", port=8080)
