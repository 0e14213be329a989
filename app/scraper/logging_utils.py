from __future__ import annotations

from typing import Any

from .utils import log_line


def _scraper_event(
    label: str = "",
    *,
    phase: str | None = None,
    job_id: str | None = None,
    **fields: Any,
) -> None:
    """Emit a structured scraper log line.

    ``phase`` may be used as a keyword alias for the label. When both ``label``
    and ``phase`` are provided, ``phase`` is emitted as part of the payload.
    ``job_id`` always leads the payload so lines for concurrent jobs can be
    told apart.
    """

    try:
        phase_label = label or (phase or "")
        if phase and label:
            fields.setdefault("phase", phase)
        payload = ", ".join(f"{k}={repr(v)}" for k, v in sorted(fields.items()))
        prefix = f"[SCRAPER][{phase_label.upper()}]"
        if job_id:
            prefix += f"[{job_id}]"
        log_line(f"{prefix} {payload}")
    except Exception:
        # Never let logging break the scraper.
        return


__all__ = ["_scraper_event"]
