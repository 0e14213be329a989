from __future__ import annotations

import logging
import re
import shutil
import sys
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile

from . import config

LOGGER = logging.getLogger("firdl")
_LOGGER_INITIALISED = False
_CURRENT_LOG_FILE: Path = config.LOG_FILE

_UNSAFE_FILENAME_CHARS = re.compile(r"[\\/:*?\"<>|]")
_WHITESPACE_RUN = re.compile(r"\s+")


def _configure_logger(log_path: Path) -> None:
    """Configure the shared application logger to write to ``log_path``."""

    global _LOGGER_INITIALISED, _CURRENT_LOG_FILE

    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(logging.INFO)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _CURRENT_LOG_FILE = log_path
    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the default log file."""

    if _LOGGER_INITIALISED:
        return

    _configure_logger(config.LOG_FILE)


def get_current_log_path() -> Path:
    """Return the path to the log file currently receiving log lines."""

    _ensure_logger()
    return _CURRENT_LOG_FILE


def ensure_dirs() -> None:
    """Ensure that the application's expected directory structure exists."""

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    config.DOWNLOADS_DIR.mkdir(parents=True, exist_ok=True)
    config.ARCHIVE_DIR.mkdir(parents=True, exist_ok=True)
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)


def log_line(message: str) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    _ensure_logger()
    LOGGER.info(message)


def sanitize_filename_component(component: str | None) -> str:
    """Replace filesystem-unsafe characters and collapse whitespace runs."""

    if not component:
        return ""

    cleaned = "".join(ch if ord(ch) >= 32 else " " for ch in str(component))
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", cleaned)
    cleaned = _WHITESPACE_RUN.sub(" ", cleaned)
    return cleaned.strip()


def truncate_to_max_bytes(value: str, max_bytes: int) -> str:
    """Truncate *value* so its UTF-8 byte length does not exceed *max_bytes*."""

    encoded = value.encode("utf-8")
    if len(encoded) <= max_bytes:
        return value

    encoded = encoded[:max_bytes]
    while encoded and (encoded[-1] & 0b11000000) == 0b10000000:
        encoded = encoded[:-1]

    return encoded.decode("utf-8", "ignore")


def prepare_job_dir(job_dir: Path) -> Path:
    """Create ``job_dir`` fresh, discarding any stale directory of the same name."""

    if job_dir.exists():
        log_line(f"Removing existing job directory: {job_dir}")
        shutil.rmtree(job_dir, ignore_errors=True)
    job_dir.mkdir(parents=True, exist_ok=True)
    return job_dir


def remove_job_artifacts(job_dir: Path, archive_path: Path | None) -> list[Path]:
    """Delete a job's output directory and archive; return what was removed."""

    removed: list[Path] = []
    if job_dir.exists():
        shutil.rmtree(job_dir, ignore_errors=True)
        removed.append(job_dir)
    if archive_path is not None and archive_path.exists():
        archive_path.unlink()
        removed.append(archive_path)
    return removed


def build_zip(source_dir: Path, archive_path: Path) -> int:
    """Compress ``source_dir`` into ``archive_path`` without its parent-path prefix.

    Returns the size of the finished archive in bytes. A partially written
    archive is removed when compression fails.
    """

    archive_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with ZipFile(archive_path, "w", ZIP_DEFLATED, compresslevel=9) as archive:
            for path in sorted(source_dir.rglob("*")):
                if path.is_file():
                    archive.write(path, path.relative_to(source_dir).as_posix())
    except Exception:
        if archive_path.exists():
            archive_path.unlink()
        raise

    return archive_path.stat().st_size


def disk_has_room(min_free_mb: int, path: Path) -> bool:
    """Return ``True`` when the filesystem holding ``path`` has enough space."""

    target = path if path.exists() else path.parent
    try:
        usage = shutil.disk_usage(target)
    except OSError:
        return False
    return usage.free >= min_free_mb * 1024 * 1024


__all__ = [
    "LOGGER",
    "ensure_dirs",
    "get_current_log_path",
    "log_line",
    "sanitize_filename_component",
    "truncate_to_max_bytes",
    "prepare_job_dir",
    "remove_job_artifacts",
    "build_zip",
    "disk_has_room",
]
