"""Playwright helpers: browser setup and the live-page snapshot source."""

from __future__ import annotations

import asyncio
import os
import random

from playwright.async_api import BrowserContext, Error, Page

from .debug import DEBUG_DIR, dump_snapshot_html, ensure_debug_dir
from .dom import DocumentTree, parse_html
from .logging import jlog

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/119.0.0.0 Safari/537.36"
)
DEFAULT_VIEWPORT = {"width": 1366, "height": 900}
SHOW_MORE_LABEL = "مشاهدة المزيد"

CHROMIUM_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]

_SCROLL_TO_BOTTOM_JS = "() => { window.scrollTo(0, document.documentElement.scrollHeight); }"
_CLICK_SHOW_MORE_JS = """
(label) => {
    const spans = Array.from(document.querySelectorAll('span'));
    const more = spans.find(s => (s.textContent || '').trim() === label);
    if (!more) return false;
    (more.closest('button, a, div') || more).click();
    return true;
}
"""


class PageSnapshotSource:
    """Snapshot source backed by a live Playwright page."""

    def __init__(self, page: Page, *, debug_html: bool = False):
        self.page = page
        self.debug_html = debug_html
        self._snapshots = 0

    async def get_snapshot(self) -> DocumentTree:
        html = await self.page.content()
        self._snapshots += 1
        if self.debug_html:
            dump_snapshot_html(html, f"snapshot_{self._snapshots:02d}.html")
        return parse_html(html, url=self.page.url)

    async def advance(self) -> None:
        await self.page.evaluate(_SCROLL_TO_BOTTOM_JS)

    async def request_more(self) -> bool:
        return bool(await self.page.evaluate(_CLICK_SHOW_MORE_JS, SHOW_MORE_LABEL))


async def goto_with_retries(
    page: Page,
    url: str,
    *,
    timeout_ms: int,
    max_retries: int = 2,
    retry_base_ms: int = 500,
) -> None:
    """Navigate to ``url``, retrying with exponential backoff; re-raises the last error."""

    attempt = 0
    while True:
        try:
            jlog("info", event="navigate", url=url, attempt=attempt + 1)
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            return
        except Error as exc:
            if attempt >= max_retries:
                raise
            delay = (retry_base_ms / 1000.0) * (2**attempt) + random.uniform(0, 0.3)
            jlog("warning", event="navigate_retry", url=url, attempt=attempt + 1, delay_s=round(delay, 3), error=str(exc))
            await asyncio.sleep(delay)
            attempt += 1


async def cleanup_playwright(context: BrowserContext | None, browser, trace: bool) -> None:
    """Stop tracing (if enabled) and close the browser; errors are logged, not raised."""

    try:
        if trace and context:
            ensure_debug_dir()
            await context.tracing.stop(path=os.path.join(DEBUG_DIR, "trace_listing.zip"))
    except Error as exc:
        jlog("warning", event="trace_stop_failed", error=str(exc))
    for resource in (context, browser):
        if resource is None:
            continue
        try:
            await resource.close()
        except Error as exc:
            jlog("warning", event="browser_close_failed", error=str(exc))


__all__ = [
    "CHROMIUM_LAUNCH_ARGS",
    "DEFAULT_USER_AGENT",
    "DEFAULT_VIEWPORT",
    "SHOW_MORE_LABEL",
    "PageSnapshotSource",
    "cleanup_playwright",
    "goto_with_retries",
]
