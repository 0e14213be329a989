"""Row extraction and relevance classification for the FIR results grid."""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from bs4 import BeautifulSoup

EXPECTED_CELL_COUNT = 10

# Column positions inside a results row.
DESCRIPTION_FIELD_INDEX = 1
SECTION_FIELD_INDEX = 8

PAGER_CLASS = "gridPager"

# Animal-protection statutes as the portal prints them (Marathi). Matching is
# an exact substring test; the invisible joiners are part of the portal text.
TARGET_SECTIONS: tuple[str, ...] = (
    "प्राण्‍यांचा छळ प्रतिबंधक अधिनियम, १९६०",
    "महाराष्‍ट्र प्राणी संरक्षण (सुधारणा)अधिनियम,१९९५",
    "महाराष्ट्र पशु संरक्षण अधिनियम, १९७६",
    "पशु संरक्षण अधिनियम, १९५१",
)


@dataclass(frozen=True)
class ExtractedRow:
    """One results-grid row: its cell texts and the id of its download input."""

    cells: tuple[str, ...]
    download_trigger: Optional[str] = None

    def field(self, index: int) -> str:
        if 0 <= index < len(self.cells):
            return self.cells[index]
        return ""

    def fingerprint(self) -> str:
        """Stable digest of every field, used to recognise a repeated page."""

        payload = json.dumps(
            {"data": list(self.cells), "downloadSelector": self.download_trigger},
            ensure_ascii=False,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _cell_text(cell) -> str:
    # <br> renders as a line break in the browser's innerText.
    for br in cell.find_all("br"):
        br.replace_with("\n")
    return cell.get_text().strip()


def parse_rows(table_html: str | None) -> list[ExtractedRow]:
    """Return the data rows of the results grid in display order.

    Only rows with exactly ``EXPECTED_CELL_COUNT`` cells are kept; header,
    pager and footer rows have a different shape and drop out here.
    """

    if not table_html:
        return []

    soup = BeautifulSoup(table_html, "html5lib")
    rows: list[ExtractedRow] = []
    for tr in soup.find_all("tr"):
        # The pager is a table nested in the grid; its page cells are not data.
        if tr.find_parent(class_=PAGER_CLASS) is not None:
            continue
        cells = tr.find_all("td", recursive=False)
        if len(cells) != EXPECTED_CELL_COUNT:
            continue
        trigger_input = cells[-1].find("input")
        trigger = trigger_input.get("id") if trigger_input is not None else None
        rows.append(
            ExtractedRow(
                cells=tuple(_cell_text(cell) for cell in cells),
                download_trigger=trigger or None,
            )
        )
    return rows


def classification_text(row: ExtractedRow) -> str:
    """Return the text searched for target statutes (section + description)."""

    return row.field(SECTION_FIELD_INDEX) + " " + row.field(DESCRIPTION_FIELD_INDEX)


def matched_section(
    row: ExtractedRow, phrases: Sequence[str] = TARGET_SECTIONS
) -> Optional[str]:
    """Return the first target phrase contained in the row, if any."""

    text = classification_text(row)
    for phrase in phrases:
        if phrase in text:
            return phrase
    return None


def is_relevant(row: ExtractedRow, phrases: Sequence[str] = TARGET_SECTIONS) -> bool:
    return matched_section(row, phrases) is not None


def relevant_rows(
    rows: Iterable[ExtractedRow], phrases: Sequence[str] = TARGET_SECTIONS
) -> list[ExtractedRow]:
    return [row for row in rows if is_relevant(row, phrases)]


__all__ = [
    "EXPECTED_CELL_COUNT",
    "TARGET_SECTIONS",
    "ExtractedRow",
    "parse_rows",
    "classification_text",
    "matched_section",
    "is_relevant",
    "relevant_rows",
]
