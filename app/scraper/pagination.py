"""Pagination Driver for the results grid.

The portal's GridView pager renders every other page as a link and the current
page as a plain span. When the next page number is not among the links, a
trailing ``...`` link reveals the next block of page numbers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bs4 import BeautifulSoup

from . import config
from .browser import BrowserSession
from .download_watcher import Sleep
from .error_codes import RemoteTimeout
from .logging_utils import _scraper_event
from .parser import ExtractedRow
from .selectors_portal import PORTAL_SELECTORS, PortalSelectors


class PagerAction(str, Enum):
    NEXT = "next"
    EXPAND = "expand"
    EXHAUSTED = "exhausted"


class EndReason(str, Enum):
    """Why a run stopped paging."""

    EXHAUSTED = "exhausted"
    NO_ROWS = "no_rows"
    REPEATED_PAGE = "repeated_page"
    PAGE_LIMIT = "page_limit"


@dataclass(frozen=True)
class PagerState:
    """Labels of the pager links in document order plus the current page span.

    ``current_position`` is the number of links that precede the current page
    span, or ``None`` when no span was rendered.
    """

    links: tuple[str, ...] = ()
    current_label: Optional[str] = None
    current_position: Optional[int] = None


def parse_pager(pager_html: str | None) -> PagerState:
    if not pager_html:
        return PagerState()

    soup = BeautifulSoup(pager_html, "html5lib")
    links: list[str] = []
    current_label: Optional[str] = None
    current_position: Optional[int] = None
    for element in soup.find_all(["a", "span"]):
        label = element.get_text().strip()
        if element.name == "a":
            links.append(label)
        elif current_label is None and label:
            current_label = label
            current_position = len(links)
    return PagerState(tuple(links), current_label, current_position)


def choose_pager_action(
    state: PagerState,
    next_page: int,
    *,
    expand_label: str = PORTAL_SELECTORS.pager_expand_label,
) -> tuple[PagerAction, Optional[int]]:
    """Decide how to reach ``next_page``; return the action and link index to click."""

    target = str(next_page)
    for index, label in enumerate(state.links):
        if label == target:
            return PagerAction.NEXT, index

    # Only an ellipsis after the current page leads forward; a leading one goes
    # back to the previous block.
    start = state.current_position or 0
    forward = [
        index
        for index, label in enumerate(state.links)
        if label == expand_label and index >= start
    ]
    if forward:
        return PagerAction.EXPAND, forward[-1]
    return PagerAction.EXHAUSTED, None


class FirstRowGuard:
    """Remembers the first row of every page seen during one run.

    The upstream pager sometimes resets to page one instead of advancing; a
    first row seen before means the run is looping over old results.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self._seen)

    def check(self, first_row: ExtractedRow) -> bool:
        """Record ``first_row``; return ``False`` when it was already seen."""

        key = first_row.fingerprint()
        if key in self._seen:
            return False
        self._seen.add(key)
        return True


async def _wait_for_pager_change(
    session: BrowserSession,
    before: Optional[str],
    *,
    selectors: PortalSelectors,
    timeout_s: float,
    poll_interval: float,
    sleep: Sleep,
) -> Optional[str]:
    polls = max(1, int(timeout_s / poll_interval)) if poll_interval > 0 else 1
    for _ in range(polls):
        current = await session.outer_html(selectors.pager)
        if current != before:
            return current
        await sleep(poll_interval)
    raise RemoteTimeout(f"Results grid did not change within {timeout_s}s after a pager click")


async def advance(
    session: BrowserSession,
    next_page: int,
    *,
    selectors: PortalSelectors = PORTAL_SELECTORS,
    max_expansions: int | None = None,
    sleep: Sleep = asyncio.sleep,
    job_id: str | None = None,
) -> bool:
    """Move the results grid to ``next_page``.

    Returns ``False`` when the result set is exhausted. Raises
    ``RemoteTimeout`` when the grid does not re-render after a click.
    """

    max_expansions = config.MAX_PAGER_EXPANSIONS if max_expansions is None else max_expansions
    expansions = 0
    pager_html = await session.outer_html(selectors.pager)

    while True:
        state = parse_pager(pager_html)
        if expansions and state.current_label == str(next_page):
            # The ellipsis postback landed directly on the wanted page.
            _scraper_event("pager", job_id=job_id, step="advanced", page=next_page, via="expand")
            return True

        action, index = choose_pager_action(
            state, next_page, expand_label=selectors.pager_expand_label
        )
        if action is PagerAction.EXHAUSTED:
            _scraper_event("pager", job_id=job_id, step="exhausted", page=next_page, links=len(state.links))
            return False
        if action is PagerAction.EXPAND:
            if expansions >= max_expansions:
                _scraper_event("pager", job_id=job_id, step="expand_limit", page=next_page, expansions=expansions)
                return False
            expansions += 1

        _scraper_event("pager", job_id=job_id, step="click", action=action.value, page=next_page, index=index)
        await session.click_nth(selectors.pager_links, index)
        pager_html = await _wait_for_pager_change(
            session,
            pager_html,
            selectors=selectors,
            timeout_s=config.RESULTS_TIMEOUT_SECONDS,
            poll_interval=config.PAGER_POLL_SECONDS,
            sleep=sleep,
        )
        await session.wait_visible(selectors.results_table, timeout_s=config.RESULTS_TIMEOUT_SECONDS)

        if action is PagerAction.NEXT:
            _scraper_event("pager", job_id=job_id, step="advanced", page=next_page, via="link")
            return True


__all__ = [
    "EndReason",
    "FirstRowGuard",
    "PagerAction",
    "PagerState",
    "advance",
    "choose_pager_action",
    "parse_pager",
]
