"""Derive safe, bounded and collision-free names for downloaded FIR PDFs."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Sequence

from . import config
from .parser import ExtractedRow
from .logging_utils import _scraper_event
from .utils import sanitize_filename_component, truncate_to_max_bytes

REFERENCE_FIELD_INDEX = 7

# (cell index, placeholder used when the cell is empty after sanitising)
FILENAME_FIELDS: tuple[tuple[int, str], ...] = (
    (2, "field2"),
    (3, "field3"),
    (4, "field4"),
    (REFERENCE_FIELD_INDEX, "unknown"),
    (6, "field6"),
)

SEPARATOR = "_"


def _segment(cells: Sequence[str], index: int, placeholder: str) -> str:
    raw = cells[index] if index < len(cells) else ""
    if index == REFERENCE_FIELD_INDEX:
        # FIR numbers look like "0123/2024"; only the number is kept.
        raw = (raw or "").split("/")[0]
    return sanitize_filename_component(raw) or placeholder


def candidate_stem(cells: Sequence[str]) -> str:
    return SEPARATOR.join(_segment(cells, index, placeholder) for index, placeholder in FILENAME_FIELDS)


def _byte_len(value: str) -> int:
    return len(value.encode("utf-8"))


def fit_stem(stem: str, max_bytes: int) -> str:
    """Drop trailing ``_`` segments until ``stem`` fits in ``max_bytes``.

    A lone segment that is still too long is cut at a character boundary.
    """

    if _byte_len(stem) <= max_bytes:
        return stem

    segments = stem.split(SEPARATOR)
    while len(segments) > 1 and _byte_len(SEPARATOR.join(segments)) > max_bytes:
        segments.pop()
    fitted = SEPARATOR.join(segments)
    if _byte_len(fitted) > max_bytes:
        fitted = truncate_to_max_bytes(fitted, max_bytes)
    return fitted


def build_filename(
    cells: Sequence[str],
    *,
    extension: str = config.DOWNLOAD_SUFFIX,
    max_bytes: int | None = None,
) -> str:
    """Return the normalised name for a row's PDF, before collision handling."""

    max_bytes = config.FILENAME_MAX_BYTES if max_bytes is None else max_bytes
    stem = fit_stem(candidate_stem(cells), max_bytes - _byte_len(extension))
    return stem + extension


def resolve_collision(
    directory: Path,
    filename: str,
    *,
    source: Optional[Path] = None,
    max_bytes: int | None = None,
) -> Path:
    """Return a path in ``directory`` that no other file occupies.

    ``name.pdf`` becomes ``name(1).pdf``, ``name(2).pdf`` and so on, always the
    smallest free counter. ``source`` (the file being renamed) never counts as
    a collision with itself.
    """

    max_bytes = config.FILENAME_MAX_BYTES if max_bytes is None else max_bytes
    stem, extension = os.path.splitext(filename)

    def _free(path: Path) -> bool:
        if source is not None and path == source:
            return True
        return not path.exists()

    candidate = directory / filename
    counter = 0
    while not _free(candidate):
        counter += 1
        suffix = f"({counter})"
        budget = max_bytes - _byte_len(extension) - _byte_len(suffix)
        candidate = directory / f"{fit_stem(stem, budget)}{suffix}{extension}"
    return candidate


def finalize_download(
    job_dir: Path,
    downloaded_name: str,
    row: ExtractedRow,
    *,
    job_id: str | None = None,
) -> Path:
    """Rename a freshly downloaded file to its normalised, unique name."""

    source = job_dir / downloaded_name
    target = resolve_collision(job_dir, build_filename(row.cells), source=source)
    if target != source:
        source.rename(target)
    _scraper_event("rename", job_id=job_id, source=downloaded_name, target=target.name)
    return target


__all__ = [
    "FILENAME_FIELDS",
    "build_filename",
    "candidate_stem",
    "finalize_download",
    "fit_stem",
    "resolve_collision",
]
