"""Job Tracker: in-memory job records, admission control and cleanup."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from . import config
from .error_codes import ErrorCode, JobRequestError
from .logging_utils import _scraper_event
from .telemetry import JobTelemetry
from .utils import log_line, remove_job_artifacts
from .validation import JobParams

CALCULATING = "Calculating..."


class JobStatus(str, Enum):
    # A job stays "started" for the whole run; "running" is never reported.
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATUSES = frozenset({JobStatus.STARTED})
TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def _iso(timestamp: Optional[float]) -> Optional[str]:
    if timestamp is None:
        return None
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(timestamp))


def new_job_id() -> str:
    """Return an unguessable job identifier that still sorts by creation time."""

    return f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex}"


@dataclass
class Job:
    job_id: str
    params: JobParams
    requester: str
    user_agent: str = "Unknown"
    status: JobStatus = JobStatus.STARTED
    progress: str = "Initializing extraction job..."
    created_at: float = field(default_factory=time.time)
    last_updated: float = field(default_factory=time.time)
    completed_at: Optional[float] = None
    failed_at: Optional[float] = None
    total_downloaded: int = 0
    total_skipped: int = 0
    current_page: int = 0
    processing_speed: str = CALCULATING
    estimated_time_remaining: str = CALCULATING
    archive_path: Optional[Path] = None
    end_reason: Optional[str] = None
    download_config: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    download_count: int = 0
    last_downloaded: Optional[float] = None
    telemetry: JobTelemetry = field(init=False)

    def __post_init__(self) -> None:
        self.telemetry = JobTelemetry(self.job_id)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_status_dict(self) -> dict[str, Any]:
        return {
            "id": self.job_id,
            "status": self.status.value,
            "progress": self.progress,
            "totalDownloaded": self.total_downloaded,
            "totalSkipped": self.total_skipped,
            "currentPage": self.current_page,
            "createdAt": _iso(self.created_at),
            "lastUpdated": _iso(self.last_updated),
            "completedAt": _iso(self.completed_at),
            "failedAt": _iso(self.failed_at),
            "params": self.params.as_payload(),
            "processingSpeed": self.processing_speed,
            "estimatedTimeRemaining": self.estimated_time_remaining,
            "endReason": self.end_reason,
            "downloadConfig": self.download_config,
            "error": self.error,
            "errorCode": self.error_code,
            "downloadCount": self.download_count,
            "lastDownloaded": _iso(self.last_downloaded),
            "telemetry": dict(self.telemetry.summary),
        }

    def to_summary_dict(self) -> dict[str, Any]:
        return {
            "id": self.job_id,
            "status": self.status.value,
            "progress": self.progress,
            "totalDownloaded": self.total_downloaded,
            "createdAt": _iso(self.created_at),
            "requester": self.requester,
            "userAgent": self.user_agent,
            "params": self.params.as_payload(),
            "processingSpeed": self.processing_speed,
        }


class JobTracker:
    """Owns every job record.

    Request threads read and create jobs while the worker loop updates them,
    so all access goes through one lock. Status only moves forward from
    ``started`` to ``completed`` or ``failed`` and counters never decrease.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create_job(self, params: JobParams, *, requester: str, user_agent: str | None = None) -> Job:
        """Admit a job for ``requester`` or raise ``JobRequestError`` (429)."""

        with self._lock:
            for existing in self._jobs.values():
                if existing.requester == requester and existing.is_active:
                    _scraper_event(
                        "reject",
                        phase="admission",
                        requester=requester,
                        active_job=existing.job_id,
                    )
                    raise JobRequestError(
                        ErrorCode.ACTIVE_JOB_EXISTS,
                        "Please wait for your current job to complete before starting a new one.",
                        http_status=429,
                    )

            now = self._clock()
            job = Job(
                job_id=new_job_id(),
                params=params,
                requester=requester,
                user_agent=user_agent or "Unknown",
                created_at=now,
                last_updated=now,
            )
            self._jobs[job.job_id] = job

        _scraper_event(
            "job",
            job_id=job.job_id,
            step="created",
            requester=requester,
            district=params.district_name,
            district_code=params.district_code,
            from_date=params.from_date,
            to_date=params.to_date,
        )
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> list[Job]:
        with self._lock:
            return sorted(self._jobs.values(), key=lambda job: job.created_at)

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for job in self._jobs.values() if job.is_active)

    def _active(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        if job is None or not job.is_active:
            return None
        return job

    def update_progress(
        self,
        job_id: str,
        message: str,
        *,
        current_page: int | None = None,
        total_downloaded: int | None = None,
        total_skipped: int | None = None,
        processing_speed: str | None = None,
        estimated_time_remaining: str | None = None,
    ) -> None:
        with self._lock:
            job = self._active(job_id)
            if job is None:
                return
            job.progress = message
            job.last_updated = self._clock()
            if current_page is not None:
                job.current_page = max(job.current_page, current_page)
            if total_downloaded is not None:
                job.total_downloaded = max(job.total_downloaded, total_downloaded)
            if total_skipped is not None:
                job.total_skipped = max(job.total_skipped, total_skipped)
            if processing_speed is not None:
                job.processing_speed = processing_speed
            if estimated_time_remaining is not None:
                job.estimated_time_remaining = estimated_time_remaining
        log_line(f"Job {job_id}: {message}")

    def set_download_config(self, job_id: str, outcome: str) -> None:
        with self._lock:
            job = self._active(job_id)
            if job is not None:
                job.download_config = outcome

    def mark_completed(
        self,
        job_id: str,
        archive_path: Path,
        *,
        end_reason: str | None = None,
    ) -> bool:
        with self._lock:
            job = self._active(job_id)
            if job is None:
                return False
            now = self._clock()
            job.status = JobStatus.COMPLETED
            job.archive_path = archive_path
            job.end_reason = end_reason
            job.completed_at = now
            job.last_updated = now
            job.progress = (
                f"Completed! Downloaded {job.total_downloaded} animal protection law FIRs. "
                "Ready for download."
            )
            total = job.total_downloaded
        _scraper_event("job", job_id=job_id, step="completed", total_downloaded=total, end_reason=end_reason)
        return True

    def mark_failed(self, job_id: str, error: str, *, error_code: str = ErrorCode.INTERNAL) -> bool:
        with self._lock:
            job = self._active(job_id)
            if job is None:
                return False
            now = self._clock()
            job.status = JobStatus.FAILED
            job.error = error
            job.error_code = error_code
            job.failed_at = now
            job.last_updated = now
            job.progress = f"Failed: {error}"
        _scraper_event("job", job_id=job_id, step="failed", error_code=error_code, error=error)
        return True

    def record_fetch(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.download_count += 1
            job.last_downloaded = self._clock()

    def _discard(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.pop(job_id, None)

    def cleanup(self, job_id: str) -> bool:
        """Forget ``job_id`` and delete its output directory and archive."""

        job = self._discard(job_id)
        if job is None:
            return False
        removed = remove_job_artifacts(
            config.job_download_dir(job_id),
            job.archive_path or config.job_archive_path(job_id),
        )
        _scraper_event(
            "cleanup",
            job_id=job_id,
            status=job.status.value,
            removed=[str(path) for path in removed],
        )
        return True

    def sweep(self, *, max_age_seconds: float | None = None) -> list[str]:
        """Clean up every finished job created more than ``max_age_seconds`` ago.

        Jobs still running are left alone; their own completion schedules
        their cleanup.
        """

        if max_age_seconds is None:
            max_age_seconds = config.JOB_MAX_AGE_MINUTES * 60
        cutoff = self._clock() - max_age_seconds
        with self._lock:
            expired = [
                job.job_id
                for job in self._jobs.values()
                if job.created_at < cutoff and job.status in TERMINAL_STATUSES
            ]
        cleaned = [job_id for job_id in expired if self.cleanup(job_id)]
        if cleaned:
            log_line(f"Backstop sweep removed {len(cleaned)} old job(s)")
        return cleaned


__all__ = [
    "ACTIVE_STATUSES",
    "Job",
    "JobStatus",
    "JobTracker",
    "TERMINAL_STATUSES",
    "new_job_id",
]
