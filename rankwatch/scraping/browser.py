"""
rankwatch.scraping.browser — Playwright Result Source
======================================================

The statistics site renders its tables client-side, so plain HTTP is not
enough: pages are loaded in headless Chromium and the table cells are
read back once the content region appears.

One browser is shared for the lifetime of the source; every fetch opens
its own page so concurrent fetches in a batch never share DOM state.

Note: Requires Playwright browser binaries. Run: ``playwright install chromium``
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from rankwatch.constants import PLAYER_URL_TEMPLATE, RESULTS_URL
from rankwatch.engine.fingerprint import LeaderboardEntry
from rankwatch.scraping.source import (
    FetchStatus,
    ParticipantPage,
    parse_leaderboard_rows,
    parse_participant_page,
)

logger = logging.getLogger(__name__)

# Returns the trimmed <td> text of every table row on the page.
_ROWS_JS = """
() => Array.from(document.querySelectorAll('table tr')).map(
    row => Array.from(row.querySelectorAll('td')).map(td => td.textContent.trim())
)
"""

_NAME_JS = """
() => {
    const el = document.querySelector('table.top span');
    return el ? el.textContent.trim() : null;
}
"""


class BrowserResultSource:
    """:class:`~rankwatch.scraping.source.ResultSource` backed by Playwright.

    Usage::

        async with BrowserResultSource(timeout=timedelta(seconds=60)) as source:
            top10 = await source.fetch_leaderboard(10)
    """

    def __init__(
        self,
        *,
        timeout: timedelta = timedelta(seconds=60),
        headless: bool = True,
    ) -> None:
        self.timeout_ms = int(timeout.total_seconds() * 1000)
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._start_lock = asyncio.Lock()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def start(self) -> None:
        async with self._start_lock:
            if self._browser is not None:
                return
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            logger.info("Chromium launched (headless=%s)", self.headless)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> BrowserResultSource:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _new_page(self) -> Page:
        await self.start()
        assert self._browser is not None
        page = await self._browser.new_page()
        page.set_default_timeout(self.timeout_ms)
        return page

    async def _wait_for_tables(self, page: Page, what: str) -> None:
        try:
            await page.wait_for_selector("table tr", timeout=self.timeout_ms)
        except PlaywrightTimeoutError:
            # Not-found pages render no table; the body text still tells us.
            logger.debug("No table rendered for %s within %d ms", what, self.timeout_ms)

    # -------------------------------------------------------------------
    # ResultSource
    # -------------------------------------------------------------------
    async def fetch_leaderboard(self, size: int) -> list[LeaderboardEntry]:
        page = await self._new_page()
        try:
            await page.goto(RESULTS_URL, wait_until="networkidle", timeout=self.timeout_ms)
            await self._wait_for_tables(page, "leaderboard")
            rows = await page.evaluate(_ROWS_JS)
        finally:
            await page.close()
        return parse_leaderboard_rows(rows, size)

    async def fetch_participant(self, participant_id: str) -> ParticipantPage:
        url = PLAYER_URL_TEMPLATE.format(participant_id=participant_id)
        page = await self._new_page()
        try:
            await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
            await self._wait_for_tables(page, f"player {participant_id}")
            body_text = await page.inner_text("body")
            try:
                name = await page.evaluate(_NAME_JS)
                rows = await page.evaluate(_ROWS_JS)
            except Exception:
                logger.warning(
                    "Could not read tables for player %s", participant_id, exc_info=True
                )
                return ParticipantPage(participant_id, FetchStatus.PARSE_ERROR)
        finally:
            await page.close()
        return parse_participant_page(participant_id, body_text, name, rows)
