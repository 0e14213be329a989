"""Configuration constants for the FIR extraction service."""
from __future__ import annotations

import os
from pathlib import Path


def _env_flag(env_var: str, default: str) -> bool:
    return os.getenv(env_var, default).strip().lower() not in {"0", "false", "no"}


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


DATA_DIR: Path = Path(os.getenv("FIRDL_DATA_DIR", "/app/data"))
DOWNLOADS_DIR: Path = DATA_DIR / "downloads"
ARCHIVE_DIR: Path = DATA_DIR / "archives"
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"

PORTAL_URL: str = "https://citizen.mahapolice.gov.in/Citizen/MH/PublishedFIRs.aspx"
RESULTS_PAGE_SIZE: str = os.getenv("RESULTS_PAGE_SIZE", "50")
MAX_PAGES: int = int(os.getenv("MAX_PAGES", "10"))
MAX_DATE_RANGE_DAYS: int = int(os.getenv("MAX_DATE_RANGE_DAYS", "90"))
DATE_FORMAT: str = "%d/%m/%Y"

# Remote UI waits (seconds)
NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds("FIRDL_NAV_TIMEOUT_SECONDS", 30)
SELECTOR_TIMEOUT_SECONDS: int = _parse_timeout_seconds("FIRDL_SELECTOR_TIMEOUT_SECONDS", 30)
RESULTS_TIMEOUT_SECONDS: int = _parse_timeout_seconds("FIRDL_RESULTS_TIMEOUT_SECONDS", 60)
CLICK_TIMEOUT_MS: int = int(os.getenv("CLICK_TIMEOUT_MS", "10000"))
# Pager postbacks re-render the grid in place; poll the pager until it changes.
PAGER_POLL_SECONDS: float = float(os.getenv("PAGER_POLL_SECONDS", "0.5"))
MAX_PAGER_EXPANSIONS: int = int(os.getenv("MAX_PAGER_EXPANSIONS", "2"))

# Download watcher
DOWNLOAD_TIMEOUT_SECONDS: int = _parse_timeout_seconds("FIRDL_DOWNLOAD_TIMEOUT_SECONDS", 120)
DOWNLOAD_POLL_SECONDS: float = float(os.getenv("DOWNLOAD_POLL_SECONDS", "1.0"))
DOWNLOAD_STABLE_CHECKS: int = int(os.getenv("DOWNLOAD_STABLE_CHECKS", "3"))
DOWNLOAD_SUFFIX: str = ".pdf"

# Pause after every download attempt so the portal is not hammered.
PER_DOWNLOAD_DELAY: float = float(os.getenv("PER_DOWNLOAD_DELAY", "1.0"))

FILENAME_MAX_BYTES: int = int(os.getenv("FILENAME_MAX_BYTES", "240"))
FILENAME_MIN_BYTES: int = 32

# Job lifecycle (minutes)
COMPLETED_CLEANUP_MINUTES: float = float(os.getenv("COMPLETED_CLEANUP_MINUTES", "30"))
FAILED_CLEANUP_MINUTES: float = float(os.getenv("FAILED_CLEANUP_MINUTES", "5"))
SWEEP_INTERVAL_MINUTES: float = float(os.getenv("SWEEP_INTERVAL_MINUTES", "120"))
JOB_MAX_AGE_MINUTES: float = float(os.getenv("JOB_MAX_AGE_MINUTES", "120"))

# Nominal file count the ETA estimate is measured against.
ETA_TARGET_FILES: int = int(os.getenv("ETA_TARGET_FILES", "50"))

MIN_FREE_MB: int = int(os.getenv("MIN_FREE_MB", "400"))
TRUST_PROXY_HEADERS: bool = _env_flag("FIRDL_TRUST_PROXY_HEADERS", "0")

# Browser session
HEADLESS: bool = _env_flag("FIRDL_HEADLESS", "1")
VIEWPORT: dict[str, int] = {"width": 1024, "height": 768}
USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "stylesheet", "font", "media"})
BROWSER_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
    "--disable-backgrounding-occluded-windows",
    "--disable-client-side-phishing-detection",
    "--disable-default-apps",
    "--disable-extensions",
    "--disable-features=TranslateUI",
    "--disable-hang-monitor",
    "--disable-popup-blocking",
    "--disable-prompt-on-repost",
    "--disable-sync",
    "--metrics-recording-only",
    "--no-first-run",
    "--password-store=basic",
    "--use-mock-keychain",
)


def job_download_dir(job_id: str) -> Path:
    """Return the isolated output directory for ``job_id``."""

    return DOWNLOADS_DIR / job_id


def job_archive_path(job_id: str) -> Path:
    """Return the archive location for ``job_id``."""

    return ARCHIVE_DIR / f"downloaded_firs_{job_id}.zip"
