from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from . import config
from .config_validation import validate_runtime_config
from .jobs import JobTracker
from .logging_utils import _scraper_event
from .utils import disk_has_room, ensure_dirs, get_current_log_path, log_line


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, dict[str, Any]]


def run_health_checks(
    entrypoint: str = "cli", *, tracker: Optional[JobTracker] = None
) -> HealthResult:
    checks: dict[str, dict[str, Any]] = {}

    try:
        validate_runtime_config(entrypoint or "cli")
        checks["config"] = {"ok": True}
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    try:
        ensure_dirs()
        fs_ok = disk_has_room(config.MIN_FREE_MB, config.DATA_DIR)
        checks["filesystem"] = {
            "ok": fs_ok,
            "data_dir": str(config.DATA_DIR),
            "min_free_mb": config.MIN_FREE_MB,
            "log_file": str(get_current_log_path()),
        }
    except OSError as exc:
        checks["filesystem"] = {"ok": False, "error": str(exc)}

    if tracker is not None:
        jobs = tracker.list_jobs()
        checks["jobs"] = {
            "ok": True,
            "tracked": len(jobs),
            "active": tracker.active_count(),
        }

    overall_ok = all(check.get("ok", False) for check in checks.values())

    _scraper_event(
        "state" if overall_ok else "error",
        phase="health",
        context="healthcheck",
        ok=overall_ok,
        checks=checks,
    )

    return HealthResult(ok=overall_ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)
