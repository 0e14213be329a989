"""Background event loop that runs extraction jobs as cooperative tasks.

Flask request threads only submit work here; every job, cleanup timer and
the backstop sweep run on a single asyncio loop owned by a daemon thread.
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future
from typing import Optional

from . import config
from .browser import SessionFactory, launch_session
from .jobs import JobTracker
from .logging_utils import _scraper_event
from .run import RunResult, run_job
from .utils import log_line
from .validation import JobParams


class JobRunner:
    def __init__(
        self,
        tracker: JobTracker,
        *,
        session_factory: SessionFactory = launch_session,
        enable_sweep: bool = True,
    ) -> None:
        self.tracker = tracker
        self.session_factory = session_factory
        self.enable_sweep = enable_sweep
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._sweep_future: Optional[Future] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def ensure_started(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is not None and self.running:
                return self._loop

            loop = asyncio.new_event_loop()
            ready = threading.Event()

            def _serve() -> None:
                asyncio.set_event_loop(loop)
                loop.call_soon(ready.set)
                loop.run_forever()

            thread = threading.Thread(target=_serve, name="firdl-jobs", daemon=True)
            thread.start()
            ready.wait()
            self._loop = loop
            self._thread = thread
            if self.enable_sweep:
                self._sweep_future = asyncio.run_coroutine_threadsafe(self._sweep_forever(), loop)
            log_line("Job runner event loop started")
            return loop

    def submit(self, job_id: str, params: JobParams) -> "Future[Optional[RunResult]]":
        """Schedule ``job_id`` on the loop and return immediately."""

        loop = self.ensure_started()
        _scraper_event("job", job_id=job_id, step="submitted")
        return asyncio.run_coroutine_threadsafe(self._execute(job_id, params), loop)

    async def _execute(self, job_id: str, params: JobParams) -> Optional[RunResult]:
        result = await run_job(
            job_id,
            params,
            tracker=self.tracker,
            session_factory=self.session_factory,
        )
        delay = config.COMPLETED_CLEANUP_MINUTES if result is not None else config.FAILED_CLEANUP_MINUTES
        self.schedule_cleanup(job_id, delay)
        return result

    def _cleanup(self, job_id: str) -> None:
        try:
            if self.tracker.cleanup(job_id):
                log_line(f"Auto-cleaned job {job_id}")
        except OSError as exc:
            log_line(f"Error during scheduled cleanup of job {job_id}: {exc}")

    def schedule_cleanup(self, job_id: str, delay_minutes: float) -> asyncio.TimerHandle:
        loop = self.ensure_started()
        log_line(f"Scheduling cleanup for job {job_id} in {delay_minutes} minutes")
        if threading.current_thread() is self._thread:
            return loop.call_later(delay_minutes * 60, self._cleanup, job_id)

        handle_ready: "Future[asyncio.TimerHandle]" = Future()
        loop.call_soon_threadsafe(
            lambda: handle_ready.set_result(loop.call_later(delay_minutes * 60, self._cleanup, job_id))
        )
        return handle_ready.result()

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(config.SWEEP_INTERVAL_MINUTES * 60)
            try:
                self.tracker.sweep()
            except OSError as exc:
                log_line(f"Backstop sweep failed: {exc}")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop; jobs still in flight are abandoned."""

        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
            self._sweep_future = None
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout)
        if not loop.is_running():
            loop.close()
        log_line("Job runner event loop stopped")


__all__ = ["JobRunner"]
