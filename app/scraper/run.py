"""Extraction run for animal-protection FIRs on the Maharashtra police portal.

Workflow:

- Create a fresh output directory for the job and launch a browser session
  whose downloads land in it.
- Open the published-FIR search page, choose 50 results per page, fill the
  registration date range and district, and search.
- For every results page: parse the grid rows, stop if the first row was
  already seen (the pager sometimes resets to page one), and for each row
  citing an animal-protection statute click its download input, wait for the
  PDF to settle on disk and rename it after the row's fields.
- Follow the pager until it runs out (or ``MAX_PAGES`` is reached), then zip
  the output directory.

Jobs are executed by ``worker.JobRunner``; ``_cli_entrypoint`` runs a single
extraction in-process.
"""

from __future__ import annotations

import argparse
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import config
from .browser import BrowserSession, DownloadConfig, SessionFactory, launch_session
from .config_validation import validate_runtime_config
from .download_watcher import Sleep, snapshot, wait_for_download
from .error_codes import ErrorCode, JobRequestError, ScrapeError
from .filenames import REFERENCE_FIELD_INDEX, finalize_download
from .jobs import CALCULATING, JobTracker
from .logging_utils import _scraper_event
from .pagination import EndReason, FirstRowGuard, advance
from .parser import ExtractedRow, matched_section, parse_rows
from .selectors_portal import PORTAL_SELECTORS, PortalSelectors
from .telemetry import JobTelemetry
from .utils import build_zip, disk_has_room, ensure_dirs, log_line, prepare_job_dir
from .validation import JobParams, validate_job_request


class RunState(str, Enum):
    INITIALIZING = "initializing"
    BROWSING = "browsing"
    SEARCHING = "searching"
    PAGING = "paging"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunResult:
    job_id: str
    archive_path: Path
    archive_bytes: int
    total_downloaded: int
    total_skipped: int
    pages: int
    end_reason: EndReason
    download_config: DownloadConfig

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "archive_path": str(self.archive_path),
            "archive_bytes": self.archive_bytes,
            "total_downloaded": self.total_downloaded,
            "total_skipped": self.total_skipped,
            "pages": self.pages,
            "end_reason": self.end_reason.value,
            "download_config": self.download_config.value,
        }


def _short_error_message(exc: BaseException, max_length: int = 200) -> str:
    """Return a truncated string representation of ``exc`` for job status."""

    message = str(exc) or exc.__class__.__name__
    if len(message) > max_length:
        return message[: max_length - 3] + "..."
    return message


def processing_speed(downloaded: int, elapsed_seconds: float) -> str:
    if downloaded <= 0:
        return CALCULATING
    minutes = max(elapsed_seconds, 1.0) / 60
    return f"{round(downloaded / minutes)} files/min"


def estimated_time_remaining(
    downloaded: int, elapsed_seconds: float, target: int | None = None
) -> str:
    """Rough minutes left, measured against a nominal ``target`` file count."""

    if downloaded <= 0:
        return CALCULATING
    target = config.ETA_TARGET_FILES if target is None else target
    minutes = max(elapsed_seconds, 1.0) / 60
    remaining = max(target - downloaded, 0)
    return f"~{round(minutes / downloaded * remaining)} min remaining"


class ExtractionRun:
    """One end-to-end extraction for one job."""

    def __init__(
        self,
        job_id: str,
        params: JobParams,
        *,
        tracker: JobTracker,
        session_factory: SessionFactory = launch_session,
        selectors: PortalSelectors = PORTAL_SELECTORS,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        telemetry: Optional[JobTelemetry] = None,
    ) -> None:
        self.job_id = job_id
        self.params = params
        self.tracker = tracker
        self.session_factory = session_factory
        self.selectors = selectors
        self.sleep = sleep
        self.clock = clock
        if telemetry is None:
            job = tracker.get(job_id)
            telemetry = job.telemetry if job is not None else JobTelemetry(job_id)
        self.telemetry = telemetry

        self.job_dir = config.job_download_dir(job_id)
        self.archive_path = config.job_archive_path(job_id)
        self.state = RunState.INITIALIZING
        self.started_at = clock()
        self.total_downloaded = 0
        self.total_skipped = 0
        self.page_index = 0
        self.download_config = DownloadConfig.UNCONFIGURED

    # ------------------------------------------------------------------ helpers
    def _enter(self, state: RunState) -> None:
        self.state = state
        _scraper_event("state", job_id=self.job_id, state=state.value, page=self.page_index or None)

    def _elapsed(self) -> float:
        return self.clock() - self.started_at

    def _progress(self, message: str, *, with_eta: bool = False) -> None:
        elapsed = self._elapsed()
        self.tracker.update_progress(
            self.job_id,
            message,
            current_page=self.page_index or None,
            total_downloaded=self.total_downloaded,
            total_skipped=self.total_skipped,
            processing_speed=processing_speed(self.total_downloaded, elapsed),
            estimated_time_remaining=(
                estimated_time_remaining(self.total_downloaded, elapsed) if with_eta else None
            ),
        )

    def _skip(self, reason: str, meta: Dict[str, Any], **extra: Any) -> None:
        self.total_skipped += 1
        self.telemetry.add("skipped", reason, {**meta, **extra})
        _scraper_event("row", job_id=self.job_id, outcome="skipped", reason=reason, **meta, **extra)

    # ------------------------------------------------------------------ phases
    async def _open_session(self) -> BrowserSession:
        self._enter(RunState.INITIALIZING)
        self._progress("Setting up isolated download directory...")
        await asyncio.to_thread(prepare_job_dir, self.job_dir)

        self._progress("Launching browser (this may take a moment)...")
        try:
            return await self.session_factory()
        except Exception as exc:  # noqa: BLE001
            raise ScrapeError(
                ErrorCode.SESSION_UNAVAILABLE,
                f"Could not start a browser session: {_short_error_message(exc)}",
            ) from exc

    async def _configure_downloads(self, session: BrowserSession) -> None:
        self._progress("Configuring download settings...")
        self.download_config = await session.configure_downloads(self.job_dir)
        self.tracker.set_download_config(self.job_id, self.download_config.value)
        _scraper_event("download_config", job_id=self.job_id, outcome=self.download_config.value)

    async def _search(self, session: BrowserSession) -> None:
        selectors = self.selectors
        params = self.params

        self._enter(RunState.BROWSING)
        self._progress("Connecting to Maharashtra Police website...")
        await session.goto(
            config.PORTAL_URL,
            wait_until="domcontentloaded",
            timeout_s=config.NAV_TIMEOUT_SECONDS,
        )
        self._progress("Loading website content...")
        await session.reload(wait_until="networkidle", timeout_s=config.NAV_TIMEOUT_SECONDS)

        self._enter(RunState.SEARCHING)
        self._progress(
            f"Setting up search parameters ({config.RESULTS_PAGE_SIZE} results per page)..."
        )
        await session.wait_visible(selectors.page_size, timeout_s=config.SELECTOR_TIMEOUT_SECONDS)
        await session.select_option(selectors.page_size, config.RESULTS_PAGE_SIZE)

        self._progress(f"Setting date range: {params.from_date} to {params.to_date}...")
        await session.wait_visible(selectors.from_date, timeout_s=config.SELECTOR_TIMEOUT_SECONDS)
        await session.fill_and_dispatch(selectors.from_date, params.from_date)
        await session.fill_and_dispatch(selectors.to_date, params.to_date)

        self._progress(f"Selecting district: {params.district_name}...")
        await session.wait_visible(selectors.district, timeout_s=config.SELECTOR_TIMEOUT_SECONDS)
        await session.select_option(selectors.district, params.district_code)

        self._progress("Executing search query...")
        await session.wait_visible(selectors.search_button, timeout_s=config.SELECTOR_TIMEOUT_SECONDS)
        await session.click(selectors.search_button)
        await session.wait_visible(selectors.results_table, timeout_s=config.RESULTS_TIMEOUT_SECONDS)
        _scraper_event("search", job_id=self.job_id, step="results_loaded")

    async def _process_row(
        self, session: BrowserSession, row: ExtractedRow, index: int, total: int
    ) -> None:
        self._progress(f"Page {self.page_index}: Analyzing FIR {index}/{total}", with_eta=True)

        section = matched_section(row)
        if section is None:
            self.telemetry.count_unmatched()
            return

        meta = {
            "page": self.page_index,
            "row": index,
            "section": section,
            "reference": row.field(REFERENCE_FIELD_INDEX),
        }
        if not row.download_trigger:
            self._skip(ErrorCode.NO_DOWNLOAD_TRIGGER, meta)
            return

        try:
            if not disk_has_room(config.MIN_FREE_MB, self.job_dir):
                self._skip(ErrorCode.DISK_FULL, meta)
                return

            self._progress(f"Downloading FIR file {self.total_downloaded + 1}... Please wait")
            before = snapshot(self.job_dir)
            await session.click(self.selectors.download_trigger(row.download_trigger))
            downloaded = await wait_for_download(
                self.job_dir, before, sleep=self.sleep, job_id=self.job_id
            )
            if downloaded is None:
                self._skip(ErrorCode.DOWNLOAD_TIMEOUT, meta)
            else:
                final_path = finalize_download(self.job_dir, downloaded, row, job_id=self.job_id)
                self.total_downloaded += 1
                self.telemetry.add("downloaded", "", {**meta, "file": final_path.name})
                _scraper_event("row", job_id=self.job_id, outcome="downloaded", file=final_path.name, **meta)
                self._progress(f"Downloaded {self.total_downloaded} files successfully")
        except Exception as exc:  # noqa: BLE001
            log_line(f"Job {self.job_id}: error processing FIR {index} on page {self.page_index}: {exc}")
            self._skip(ErrorCode.ROW_ERROR, meta, error=_short_error_message(exc))

        # Pace downloads so the portal is not hammered.
        await self.sleep(config.PER_DOWNLOAD_DELAY)

    async def _page_loop(self, session: BrowserSession) -> EndReason:
        guard = FirstRowGuard()
        self.page_index = 1
        while True:
            self._enter(RunState.PAGING)
            self._progress(f"Processing page {self.page_index}... (Scanning FIR records)")

            rows = parse_rows(await session.outer_html(self.selectors.results_table))
            _scraper_event("page", job_id=self.job_id, page=self.page_index, rows=len(rows))
            if not rows:
                return EndReason.NO_ROWS
            if not guard.check(rows[0]):
                _scraper_event("page", job_id=self.job_id, page=self.page_index, step="repeated_first_row")
                return EndReason.REPEATED_PAGE

            self.telemetry.count_scanned(len(rows))
            for index, row in enumerate(rows, start=1):
                await self._process_row(session, row, index, len(rows))

            if self.page_index >= config.MAX_PAGES:
                return EndReason.PAGE_LIMIT

            next_page = self.page_index + 1
            self._progress(
                f"Moving to page {next_page}... ({self.total_downloaded} files collected so far)"
            )
            if not await advance(
                session,
                next_page,
                selectors=self.selectors,
                sleep=self.sleep,
                job_id=self.job_id,
            ):
                return EndReason.EXHAUSTED
            self.page_index = next_page

    async def _close(self, session: BrowserSession) -> None:
        try:
            await session.close()
        except Exception as exc:  # noqa: BLE001
            log_line(f"Job {self.job_id}: failed to close browser session: {exc}")

    async def _package(self) -> int:
        self._enter(RunState.FINALIZING)
        self._progress(f"Creating ZIP file with {self.total_downloaded} documents...")
        try:
            size = await asyncio.to_thread(build_zip, self.job_dir, self.archive_path)
        except Exception as exc:  # noqa: BLE001
            raise ScrapeError(
                ErrorCode.PACKAGING_FAILED,
                f"Could not create the ZIP archive: {_short_error_message(exc)}",
            ) from exc
        _scraper_event("archive", job_id=self.job_id, path=str(self.archive_path), bytes=size)
        return size

    async def execute(self) -> RunResult:
        _scraper_event(
            "start",
            job_id=self.job_id,
            from_date=self.params.from_date,
            to_date=self.params.to_date,
            district=self.params.district_name,
            district_code=self.params.district_code,
        )
        try:
            session = await self._open_session()
            try:
                await self._configure_downloads(session)
                await self._search(session)
                end_reason = await self._page_loop(session)
            finally:
                await self._close(session)
            archive_bytes = await self._package()
        except BaseException:
            self._enter(RunState.FAILED)
            raise

        self._enter(RunState.DONE)
        result = RunResult(
            job_id=self.job_id,
            archive_path=self.archive_path,
            archive_bytes=archive_bytes,
            total_downloaded=self.total_downloaded,
            total_skipped=self.total_skipped,
            pages=self.page_index,
            end_reason=end_reason,
            download_config=self.download_config,
        )
        self.telemetry.finalize({"result": result.to_dict()})
        return result


async def extract_firs(
    job_id: str,
    params: JobParams,
    *,
    tracker: JobTracker,
    session_factory: SessionFactory = launch_session,
    sleep: Sleep = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> RunResult:
    """Run one extraction; raise ``ScrapeError`` (or any unexpected error) on failure."""

    run = ExtractionRun(
        job_id,
        params,
        tracker=tracker,
        session_factory=session_factory,
        sleep=sleep,
        clock=clock,
    )
    return await run.execute()


async def run_job(
    job_id: str,
    params: JobParams,
    *,
    tracker: JobTracker,
    session_factory: SessionFactory = launch_session,
    sleep: Sleep = asyncio.sleep,
) -> Optional[RunResult]:
    """Run ``job_id`` and record its terminal status on ``tracker``.

    Errors never propagate out of here; they become the job's failure reason.
    """

    try:
        result = await extract_firs(
            job_id, params, tracker=tracker, session_factory=session_factory, sleep=sleep
        )
    except ScrapeError as exc:
        log_line(f"Job {job_id} failed: {exc}")
        tracker.mark_failed(job_id, _short_error_message(exc), error_code=exc.error_code)
        return None
    except Exception as exc:  # noqa: BLE001
        log_line(f"Job {job_id} failed with unexpected error: {exc!r}")
        tracker.mark_failed(job_id, _short_error_message(exc), error_code=ErrorCode.INTERNAL)
        return None

    tracker.mark_completed(job_id, result.archive_path, end_reason=result.end_reason.value)
    return result


def _cli_entrypoint(argv: Optional[List[str]] = None) -> None:  # pragma: no cover
    parser = argparse.ArgumentParser(description="Extract animal-protection FIRs for one district")
    parser.add_argument("--from-date", required=True, help="DD/MM/YYYY")
    parser.add_argument("--to-date", required=True, help="DD/MM/YYYY")
    parser.add_argument("--district", required=True, help="District name as listed on the portal")
    parser.add_argument("--max-pages", type=int, default=config.MAX_PAGES)
    parser.add_argument("--per-download-delay", type=float, default=config.PER_DOWNLOAD_DELAY)
    args = parser.parse_args(argv)

    ensure_dirs()
    config.MAX_PAGES = args.max_pages
    config.PER_DOWNLOAD_DELAY = args.per_download_delay
    validate_runtime_config("cli")

    try:
        params = validate_job_request(
            {"fromDate": args.from_date, "toDate": args.to_date, "districtName": args.district}
        )
    except JobRequestError as exc:
        parser.error(f"{exc} ({exc.error_code})")

    tracker = JobTracker()
    job = tracker.create_job(params, requester="cli", user_agent="cli")
    result = asyncio.run(run_job(job.job_id, params, tracker=tracker))
    if result is None:
        raise SystemExit(f"Extraction failed: {tracker.get(job.job_id).error}")
    print(result.archive_path)


if __name__ == "__main__":  # pragma: no cover
    _cli_entrypoint()

__all__ = ["ExtractionRun", "RunResult", "RunState", "extract_firs", "run_job", "_cli_entrypoint"]
