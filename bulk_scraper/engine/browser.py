"""Shared Playwright browser handing out isolated pages."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

import structlog

if TYPE_CHECKING:  # pragma: no cover
    from playwright.async_api import Browser, Page, Playwright

LAUNCH_ARGS = ["--no-sandbox", "--disable-dev-shm-usage"]


class BrowserSession:
    """One Chromium instance per run; every caller gets its own context.

    Contexts are never shared between callers, so a retry never inherits
    cookies, navigation state or a wedged page from an earlier attempt.
    """

    def __init__(
        self,
        headless: bool = True,
        viewport: tuple[int, int] = (2600, 1080),
        user_agent: str | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.headless = headless
        self.viewport = viewport
        self.user_agent = user_agent
        self.logger = logger or structlog.get_logger("bulk_scraper.browser")
        self._playwright: "Playwright | None" = None
        self._browser: "Browser | None" = None
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        async with self._lock:
            if self._browser is not None:
                return
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, args=LAUNCH_ARGS
            )
            self.logger.info("browser_started", headless=self.headless)

    @asynccontextmanager
    async def isolated_page(self, timeout: float) -> AsyncIterator["Page"]:
        """Yield a page inside a brand-new browser context."""

        await self.start()
        assert self._browser is not None
        context = await self._browser.new_context(
            viewport={"width": self.viewport[0], "height": self.viewport[1]},
            user_agent=self.user_agent,
        )
        try:
            page = await context.new_page()
            page.set_default_timeout(timeout * 1000)
            yield page
        finally:
            await context.close()

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
                self.logger.info("browser_stopped")


__all__ = ["BrowserSession", "LAUNCH_ARGS"]
