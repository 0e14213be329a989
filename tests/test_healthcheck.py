from __future__ import annotations

import pytest

from app.scraper import config
from app.scraper import healthcheck
from app.scraper.jobs import JobTracker
from app.scraper.validation import validate_job_request
from tests.fake_portal import _reload_main_module


def test_run_health_checks_happy_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)
    tracker = JobTracker()
    tracker.create_job(
        validate_job_request({"fromDate": "01/01/2024", "toDate": "02/01/2024", "districtName": "AKOLA"}),
        requester="a",
    )

    result = healthcheck.run_health_checks(entrypoint="ui", tracker=tracker)
    assert result.ok is True
    assert result.checks["config"]["ok"] is True
    assert result.checks["filesystem"]["ok"] is True
    assert result.checks["filesystem"]["log_file"].endswith("latest.log")
    assert result.checks["jobs"] == {"ok": True, "tracked": 1, "active": 1}


def test_run_health_checks_handles_invalid_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MIN_FREE_MB", -1)

    result = healthcheck.run_health_checks(entrypoint="cli")
    assert result.ok is False
    assert result.checks["config"]["ok"] is False
    assert "jobs" not in result.checks


def test_health_api_reports_status(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)

    main = _reload_main_module()
    client = main.app.test_client()

    resp = client.get("/health")
    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["ok"] is True
    assert payload["status"] == "healthy"
    assert "filesystem" in payload["checks"]

    monkeypatch.setattr(config, "DOWNLOAD_STABLE_CHECKS", 0)

    resp_unhealthy = client.get("/health")
    assert resp_unhealthy.status_code == 503
    data_unhealthy = resp_unhealthy.get_json()
    assert data_unhealthy["ok"] is False
    assert data_unhealthy["checks"]["config"]["ok"] is False
