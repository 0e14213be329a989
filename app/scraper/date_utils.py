from __future__ import annotations

import re
from datetime import date, datetime

from . import config

_STRICT_DMY = re.compile(r"^\d{2}/\d{2}/\d{4}$")


def parse_portal_date(value: str | None) -> date | None:
    """Parse a strict ``DD/MM/YYYY`` string; return ``None`` when it is not one.

    Single-digit days or months and impossible calendar dates are rejected,
    matching what the portal's own date fields accept.
    """

    candidate = (value or "").strip()
    if not _STRICT_DMY.match(candidate):
        return None
    try:
        return datetime.strptime(candidate, config.DATE_FORMAT).date()
    except ValueError:
        return None


def span_days(start: date, end: date) -> int:
    """Return the number of whole days from ``start`` to ``end``."""

    return (end - start).days


def filename_date(value: str) -> str:
    """Render a ``DD/MM/YYYY`` string as ``DD-MM-YYYY`` for use in filenames."""

    return value.replace("/", "-")
