"""Per-job row outcome telemetry."""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any, Dict, List, Optional


class JobTelemetry:
    """Collect the outcome of every relevant row seen during one job.

    Rows that did not match a target statute are only counted.
    """

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        self.started_at = time.time()
        self.ended_at: Optional[float] = None
        self.entries: List[Dict[str, Any]] = []
        self.summary: Dict[str, int] = defaultdict(int)

    def add(self, status: str, reason: str, meta: Dict[str, Any]) -> None:
        self.entries.append(
            {
                "status": status,
                "reason": reason,
                **meta,
            }
        )
        self.summary[f"count_{status}"] += 1

    def count_unmatched(self, rows: int = 1) -> None:
        self.summary["rows_not_matched"] += rows

    def count_scanned(self, rows: int) -> None:
        self.summary["rows_scanned"] += rows

    def finalize(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self.ended_at = time.time()
        return self.to_dict(extra)

    def snapshot_entries(self) -> List[Dict[str, Any]]:
        return [dict(entry) for entry in list(self.entries)]

    def to_dict(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "summary": dict(self.summary),
            "entries": self.snapshot_entries(),
            **(extra or {}),
        }


__all__ = ["JobTelemetry"]
