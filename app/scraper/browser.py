"""Browser automation capability used by the extraction run.

The run only talks to ``BrowserSession``; ``PlaywrightSession`` is the real
implementation (async Playwright, Chromium) and tests substitute a fake that
serves canned pages.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional, Protocol

from playwright.async_api import (
    Browser,
    BrowserContext,
    CDPSession,
    Error as PWError,
    Page,
    Playwright,
    Route,
    TimeoutError as PWTimeout,
    async_playwright,
)

from . import config
from .error_codes import ErrorCode, RemoteTimeout, ScrapeError
from .logging_utils import _scraper_event
from .utils import log_line


class DownloadConfig(str, Enum):
    """Which mechanism (if any) pointed browser downloads at the job directory."""

    PRIMARY = "configured_via_primary"
    FALLBACK = "configured_via_fallback"
    UNCONFIGURED = "unconfigured"


class BrowserSession(Protocol):
    async def configure_downloads(self, download_dir: Path) -> DownloadConfig: ...

    async def goto(self, url: str, *, wait_until: str, timeout_s: float) -> None: ...

    async def reload(self, *, wait_until: str, timeout_s: float) -> None: ...

    async def wait_visible(self, selector: str, *, timeout_s: float) -> None: ...

    async def select_option(self, selector: str, value: str) -> None: ...

    async def fill_and_dispatch(self, selector: str, value: str) -> None: ...

    async def click(self, selector: str) -> None: ...

    async def click_nth(self, selector: str, index: int) -> None: ...

    async def outer_html(self, selector: str) -> Optional[str]: ...

    async def close(self) -> None: ...


SessionFactory = Callable[[], Awaitable[BrowserSession]]

_SET_VALUE_JS = """
([selector, value]) => {
    const input = document.querySelector(selector);
    if (!input) {
        return false;
    }
    input.value = value;
    input.dispatchEvent(new Event("input", { bubbles: true }));
    input.dispatchEvent(new Event("change", { bubbles: true }));
    return true;
}
"""


async def _block_heavy_resources(route: Route) -> None:
    if route.request.resource_type in config.BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class PlaywrightSession:
    """One Chromium browser with a single page, owned by one job."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self.page = page

    @classmethod
    async def launch(cls, *, headless: Optional[bool] = None) -> "PlaywrightSession":
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(
                headless=config.HEADLESS if headless is None else headless,
                args=list(config.BROWSER_ARGS),
            )
            context = await browser.new_context(
                user_agent=config.USER_AGENT,
                viewport=dict(config.VIEWPORT),
                ignore_https_errors=True,
                accept_downloads=True,
            )
            page = await context.new_page()
            await page.route("**/*", _block_heavy_resources)
        except Exception:
            await playwright.stop()
            raise
        return cls(playwright, browser, context, page)

    async def _cdp(self) -> CDPSession:
        return await self._context.new_cdp_session(self.page)

    async def configure_downloads(self, download_dir: Path) -> DownloadConfig:
        """Point downloads at ``download_dir``; try the browser-wide call, then the page one."""

        target = str(download_dir.resolve())
        try:
            cdp = await self._cdp()
        except PWError as exc:
            log_line(f"Could not open a CDP session, relying on default downloads: {exc}")
            return DownloadConfig.UNCONFIGURED

        try:
            info = await cdp.send("Target.getTargetInfo")
            params = {"behavior": "allow", "downloadPath": target}
            context_id = (info.get("targetInfo") or {}).get("browserContextId")
            if context_id:
                params["browserContextId"] = context_id
            await cdp.send("Browser.setDownloadBehavior", params)
            return DownloadConfig.PRIMARY
        except PWError as exc:
            log_line(f"Browser.setDownloadBehavior failed, trying Page.setDownloadBehavior: {exc}")

        try:
            await cdp.send("Page.setDownloadBehavior", {"behavior": "allow", "downloadPath": target})
            return DownloadConfig.FALLBACK
        except PWError as exc:
            log_line(f"Page.setDownloadBehavior also failed, relying on default downloads: {exc}")
            return DownloadConfig.UNCONFIGURED

    async def goto(self, url: str, *, wait_until: str, timeout_s: float) -> None:
        _scraper_event("nav", step="goto", url=url, wait_until=wait_until)
        try:
            await self.page.goto(url, wait_until=wait_until, timeout=timeout_s * 1000)
        except PWTimeout as exc:
            raise RemoteTimeout(f"Timed out loading {url}: {exc}") from exc

    async def reload(self, *, wait_until: str, timeout_s: float) -> None:
        try:
            await self.page.reload(wait_until=wait_until, timeout=timeout_s * 1000)
        except PWTimeout as exc:
            raise RemoteTimeout(f"Timed out reloading the page: {exc}") from exc

    async def wait_visible(self, selector: str, *, timeout_s: float) -> None:
        try:
            await self.page.wait_for_selector(selector, state="visible", timeout=timeout_s * 1000)
        except PWTimeout as exc:
            raise RemoteTimeout(f"{selector} did not appear within {timeout_s}s") from exc

    async def select_option(self, selector: str, value: str) -> None:
        selected = await self.page.select_option(selector, value, timeout=config.CLICK_TIMEOUT_MS)
        if value not in selected:
            raise ScrapeError(ErrorCode.SITE_STRUCTURE, f"Option {value!r} missing from {selector}")

    async def fill_and_dispatch(self, selector: str, value: str) -> None:
        found = await self.page.evaluate(_SET_VALUE_JS, [selector, value])
        if not found:
            raise ScrapeError(ErrorCode.SITE_STRUCTURE, f"Input {selector} not found")

    async def click(self, selector: str) -> None:
        try:
            await self.page.click(selector, timeout=config.CLICK_TIMEOUT_MS)
        except PWTimeout as exc:
            raise RemoteTimeout(f"Could not click {selector}: {exc}") from exc

    async def click_nth(self, selector: str, index: int) -> None:
        try:
            await self.page.locator(selector).nth(index).click(timeout=config.CLICK_TIMEOUT_MS)
        except PWTimeout as exc:
            raise RemoteTimeout(f"Could not click {selector} #{index}: {exc}") from exc

    async def outer_html(self, selector: str) -> Optional[str]:
        locator = self.page.locator(selector).first
        if await locator.count() == 0:
            return None
        return await locator.evaluate("el => el.outerHTML")

    async def close(self) -> None:
        for label, closer in (
            ("page", self.page.close),
            ("context", self._context.close),
            ("browser", self._browser.close),
            ("playwright", self._playwright.stop),
        ):
            try:
                await closer()
            except Exception as exc:  # noqa: BLE001
                log_line(f"Failed to close {label}: {exc}")


async def launch_session() -> BrowserSession:
    return await PlaywrightSession.launch()


__all__ = [
    "BrowserSession",
    "DownloadConfig",
    "PlaywrightSession",
    "SessionFactory",
    "launch_session",
]
