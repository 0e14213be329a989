"""Error code taxonomy and exception types for job submission and runs.

Codes are surfaced to API callers (``code`` field of rejections) and recorded
on failed jobs, so they should stay stable.
"""

from __future__ import annotations


class ErrorCode:
    # Input validation (rejected before a job exists)
    INVALID_PAYLOAD = "invalid_payload"
    MISSING_FIELDS = "missing_fields"
    INVALID_DATE_FORMAT = "invalid_date_format"
    INVALID_DATE_RANGE = "invalid_date_range"
    DATE_RANGE_TOO_LONG = "date_range_too_long"
    UNKNOWN_DISTRICT = "unknown_district"
    # Admission
    ACTIVE_JOB_EXISTS = "active_job_exists"
    # Run-fatal
    SESSION_UNAVAILABLE = "session_unavailable"
    PAGE_LOAD_TIMEOUT = "page_load_timeout"
    SITE_STRUCTURE = "site_structure_changed"
    PACKAGING_FAILED = "packaging_failed"
    INTERNAL = "internal_error"
    # Row-level (never escalated)
    NO_DOWNLOAD_TRIGGER = "no_download_trigger"
    DOWNLOAD_TIMEOUT = "download_timeout"
    ROW_ERROR = "row_error"
    DISK_FULL = "disk_full"


class JobRequestError(Exception):
    """A job submission rejected synchronously (validation or admission)."""

    def __init__(self, error_code: str, message: str, *, http_status: int = 400) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.http_status = http_status

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


class ScrapeError(Exception):
    """A failure that ends an extraction run."""

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


class RemoteTimeout(ScrapeError):
    """A bounded wait on the remote UI expired."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.PAGE_LOAD_TIMEOUT, message)


__all__ = ["ErrorCode", "JobRequestError", "ScrapeError", "RemoteTimeout"]
