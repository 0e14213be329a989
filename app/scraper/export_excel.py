"""Excel report for a single job's row outcomes."""

from __future__ import annotations

from io import BytesIO
from typing import TYPE_CHECKING

import pandas as pd

if TYPE_CHECKING:
    from .jobs import Job


def export_job_report(job: "Job") -> BytesIO:
    """Build an ``.xlsx`` workbook for ``job`` in memory.

    Nothing is written to disk so a job keeps exactly one output directory and
    one archive.
    """

    entries = job.telemetry.snapshot_entries()
    df = pd.DataFrame(entries)
    if df.empty:
        df = pd.DataFrame([{"info": "No matching FIRs recorded for this job"}])

    has_status = "status" in df.columns
    downloaded = df[df["status"] == "downloaded"].copy() if has_status else pd.DataFrame()
    skipped = df[df["status"] == "skipped"].copy() if has_status else pd.DataFrame()

    def safe_pivot(frame, by):
        if frame.empty or not all(column in frame.columns for column in by):
            return pd.DataFrame()
        return frame.groupby(by).size().reset_index(name="count").sort_values("count", ascending=False)

    summary_status = df.groupby("status").size().reset_index(name="count") if has_status else pd.DataFrame()
    summary_page = safe_pivot(df, ["page", "status"])
    summary_section = safe_pivot(df, ["section", "status"])

    job_sheet = pd.DataFrame(
        [{"field": key, "value": value} for key, value in job.to_status_dict().items()
         if not isinstance(value, (dict, list))]
        + [{"field": key, "value": value} for key, value in job.params.as_payload().items()]
    )

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="All")
        downloaded.to_excel(writer, index=False, sheet_name="Downloaded")
        skipped.to_excel(writer, index=False, sheet_name="Skipped")
        summary_status.to_excel(writer, index=False, sheet_name="Summary_Status")
        if not summary_page.empty:
            summary_page.to_excel(writer, index=False, sheet_name="Summary_Page")
        if not summary_section.empty:
            summary_section.to_excel(writer, index=False, sheet_name="Summary_Section")
        job_sheet.to_excel(writer, index=False, sheet_name="Job")
    buffer.seek(0)
    return buffer


def report_filename(job: "Job") -> str:
    return f"fir_job_report_{job.job_id}.xlsx"


__all__ = ["export_job_report", "report_filename"]
