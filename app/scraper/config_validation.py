from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["ui", "cli", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def _clamp(field_name: str, value: int, adjusted: int, *, entrypoint: Entrypoint) -> None:
    _scraper_event(
        "state",
        phase="config",
        context="runtime_validation",
        kind="config_adjustment",
        field=field_name,
        value=value,
        adjusted=adjusted,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {field_name} < {adjusted}; clamping to {adjusted}.")
    setattr(config, field_name, adjusted)


def validate_runtime_config(entrypoint: Entrypoint) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Non-fatal adjustments (clamping the page cap and pager retries) are logged
    but do not raise.
    """

    if config.MAX_PAGES < 1:
        _clamp("MAX_PAGES", config.MAX_PAGES, 1, entrypoint=entrypoint)

    if config.MAX_PAGER_EXPANSIONS < 0:
        _clamp("MAX_PAGER_EXPANSIONS", config.MAX_PAGER_EXPANSIONS, 0, entrypoint=entrypoint)

    if config.MIN_FREE_MB < 0:
        _raise_config_error(
            "MIN_FREE_MB must be non-negative.",
            entrypoint=entrypoint,
            error="min_free_mb_invalid",
        )

    timeout_fields = [
        ("NAV_TIMEOUT_SECONDS", config.NAV_TIMEOUT_SECONDS),
        ("SELECTOR_TIMEOUT_SECONDS", config.SELECTOR_TIMEOUT_SECONDS),
        ("RESULTS_TIMEOUT_SECONDS", config.RESULTS_TIMEOUT_SECONDS),
        ("DOWNLOAD_TIMEOUT_SECONDS", config.DOWNLOAD_TIMEOUT_SECONDS),
        ("DOWNLOAD_POLL_SECONDS", config.DOWNLOAD_POLL_SECONDS),
        ("PAGER_POLL_SECONDS", config.PAGER_POLL_SECONDS),
    ]

    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )

    if config.DOWNLOAD_STABLE_CHECKS < 1:
        _raise_config_error(
            "DOWNLOAD_STABLE_CHECKS must be at least 1.",
            entrypoint=entrypoint,
            error="invalid_stable_checks",
        )

    if config.FILENAME_MAX_BYTES < config.FILENAME_MIN_BYTES:
        _raise_config_error(
            f"FILENAME_MAX_BYTES must be at least {config.FILENAME_MIN_BYTES}.",
            entrypoint=entrypoint,
            error="filename_cap_too_small",
        )

    for field_name in ("COMPLETED_CLEANUP_MINUTES", "FAILED_CLEANUP_MINUTES", "PER_DOWNLOAD_DELAY"):
        if getattr(config, field_name) < 0:
            _raise_config_error(
                f"{field_name} must be non-negative.",
                entrypoint=entrypoint,
                error="negative_delay",
            )

    for field_name in ("SWEEP_INTERVAL_MINUTES", "JOB_MAX_AGE_MINUTES"):
        if getattr(config, field_name) <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_sweep_setting",
            )


__all__ = ["validate_runtime_config", "Entrypoint"]
