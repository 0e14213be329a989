from __future__ import annotations

"""Detect a finished browser download by watching its size settle.

The browser gives no completion signal for downloads it saves on its own, so
a new file counts as finished once the same non-zero size has been observed on
``stable_checks`` consecutive polls.
"""

import asyncio
import math
from pathlib import Path
from typing import AbstractSet, Awaitable, Callable, Optional

from . import config
from .logging_utils import _scraper_event
from .utils import log_line

Sleep = Callable[[float], Awaitable[None]]


def snapshot(directory: Path) -> frozenset[str]:
    """Return the names present in ``directory`` before a download is triggered."""

    if not directory.is_dir():
        return frozenset()
    return frozenset(p.name for p in directory.iterdir())


def _newest_candidate(directory: Path, before: AbstractSet[str], suffix: str) -> Optional[Path]:
    candidates = []
    for path in directory.iterdir():
        if path.name in before or not path.name.lower().endswith(suffix):
            continue
        try:
            candidates.append((path.stat().st_mtime, path))
        except FileNotFoundError:
            # Renamed away between listing and stat.
            continue
    if not candidates:
        return None
    candidates.sort(key=lambda item: item[0], reverse=True)
    return candidates[0][1]


async def wait_for_download(
    directory: Path,
    before: AbstractSet[str],
    *,
    timeout: float | None = None,
    poll_interval: float | None = None,
    stable_checks: int | None = None,
    suffix: str = config.DOWNLOAD_SUFFIX,
    sleep: Sleep = asyncio.sleep,
    job_id: str | None = None,
) -> Optional[str]:
    """Poll ``directory`` until a new ``suffix`` file stops growing.

    Returns the file name, or ``None`` when nothing settled within ``timeout``.
    A directory that does not exist yet is treated as "not yet".
    """

    timeout = config.DOWNLOAD_TIMEOUT_SECONDS if timeout is None else timeout
    poll_interval = config.DOWNLOAD_POLL_SECONDS if poll_interval is None else poll_interval
    stable_checks = config.DOWNLOAD_STABLE_CHECKS if stable_checks is None else stable_checks

    max_polls = max(1, math.ceil(timeout / poll_interval)) if poll_interval > 0 else max(1, int(timeout))
    tracked: Optional[str] = None
    last_size = -1
    equal_observations = 0

    for poll in range(1, max_polls + 1):
        if not directory.is_dir():
            log_line(f"Download directory doesn't exist yet: {directory}")
            await sleep(poll_interval)
            continue

        latest = _newest_candidate(directory, before, suffix.lower())
        if latest is None:
            await sleep(poll_interval)
            continue

        try:
            size = latest.stat().st_size
        except FileNotFoundError:
            await sleep(poll_interval)
            continue

        if latest.name != tracked or size != last_size or size == 0:
            tracked = latest.name
            last_size = size
            equal_observations = 1 if size > 0 else 0
        else:
            equal_observations += 1

        if equal_observations >= stable_checks:
            _scraper_event(
                "download",
                job_id=job_id,
                step="settled",
                file=latest.name,
                size=size,
                polls=poll,
            )
            return latest.name

        await sleep(poll_interval)

    _scraper_event(
        "download",
        job_id=job_id,
        step="timeout",
        directory=str(directory),
        timeout=timeout,
        last_file=tracked,
    )
    return None


__all__ = ["snapshot", "wait_for_download"]
