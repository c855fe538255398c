"""URL discovery over infinite-scroll and paginated listing sources."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING

import structlog
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import DiscoveryMode, DiscoverySettings
from .browser import BrowserSession
from .checkpoint import CheckpointStore
from .keys import KeySet
from .models import DiscoveryResult, DiscoveryState
from .parser import LinkExtractor

if TYPE_CHECKING:  # pragma: no cover
    from playwright.async_api import Page

NETWORK_IDLE_TIMEOUT_MS = 3000


class DiscoveryStrategy(ABC):
    """Shared discovery loop: dedup, stagnation, termination and checkpointing.

    Subclasses only decide how the source moves forward one unit (``advance``)
    and which candidate keys are visible afterwards (``extract``).
    """

    def __init__(
        self,
        settings: DiscoverySettings,
        checkpoints: CheckpointStore | None = None,
        logger: structlog.BoundLogger | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self.settings = settings
        self.checkpoints = checkpoints
        self.logger = logger or structlog.get_logger("bulk_scraper.discovery")
        self.stop_event = stop_event

    async def open(self) -> None:
        """Prepare the source before the first step."""

    async def close(self) -> None:
        """Release whatever ``open`` acquired."""

    @abstractmethod
    async def advance(self, step: int) -> None:
        """Move the source forward by one unit."""

    @abstractmethod
    async def extract(self) -> list[str]:
        """Return the candidate keys visible in the current source state."""

    # ------------------------------------------------------------------
    async def discover(self, target_count: int | None = None) -> DiscoveryResult:
        seed: list[str] = []
        if self.checkpoints is not None and self.settings.resume_from_file:
            seed = self.checkpoints.load_keys()
        state = DiscoveryState(
            collected=KeySet(seed),
            target_count=target_count or self.settings.target_count,
        )
        self.logger.info(
            "discovery_started",
            listing_url=self.settings.listing_url,
            target=state.target_count,
            resumed=len(state.collected),
        )
        error: str | None = None
        try:
            await self.open()
            try:
                await self._run(state)
            finally:
                await self.close()
        except Exception as exc:  # noqa: BLE001
            error = str(exc) or exc.__class__.__name__
            self.logger.error(
                "discovery_source_failed",
                error=error,
                collected=len(state.collected),
                steps=state.attempts_made,
            )
        self._save(state)
        return DiscoveryResult(
            keys=state.collected.to_list(),
            total_collected=len(state.collected),
            success=error is None,
            error=error,
            new_keys=state.new_keys,
            steps=state.attempts_made,
        )

    async def _run(self, state: DiscoveryState) -> None:
        while state.attempts_made < self.settings.max_steps and not state.target_reached:
            if self.stop_event is not None and self.stop_event.is_set():
                self.logger.info("discovery_stop_requested", collected=len(state.collected))
                return
            await self.advance(state.attempts_made)
            added = state.collected.update(await self.extract())
            state.attempts_made += 1
            state.new_keys += added
            state.new_since_save += added
            state.steps_since_save += 1
            self.logger.info(
                "discovery_step",
                step=state.attempts_made,
                new=added,
                total=len(state.collected),
            )
            if self._should_save(state):
                self._save(state)

            if added == 0:
                state.stagnant_steps += 1
                if state.stagnant_steps >= self.settings.max_stagnant_steps:
                    self.logger.info("discovery_stagnated", stagnant_steps=state.stagnant_steps)
                    return
            else:
                state.stagnant_steps = 0
            if state.target_reached:
                self.logger.info("discovery_target_reached", target=state.target_count)
                return
        if not state.target_reached:
            self.logger.info("discovery_step_budget_exhausted", steps=state.attempts_made)

    def _should_save(self, state: DiscoveryState) -> bool:
        if state.new_since_save >= self.settings.save_interval:
            return True
        return state.new_since_save > 0 and state.steps_since_save >= self.settings.save_every_steps

    def _save(self, state: DiscoveryState) -> None:
        if self.checkpoints is None:
            return
        self.checkpoints.save_keys(state.collected.to_list())
        state.new_since_save = 0
        state.steps_since_save = 0


class BrowserDiscovery(DiscoveryStrategy):
    """Discovery against a live listing page rendered by Playwright."""

    def __init__(
        self,
        session: BrowserSession,
        settings: DiscoverySettings,
        checkpoints: CheckpointStore | None = None,
        logger: structlog.BoundLogger | None = None,
        stop_event: asyncio.Event | None = None,
        link_extractor: LinkExtractor | None = None,
    ) -> None:
        super().__init__(settings, checkpoints, logger, stop_event)
        self.session = session
        self.link_extractor = link_extractor or LinkExtractor.from_settings(settings)
        self.page: "Page | None" = None
        self._stack: AsyncExitStack | None = None

    async def open(self) -> None:
        self._stack = AsyncExitStack()
        self.page = await self._stack.enter_async_context(
            self.session.isolated_page(self.settings.timeout)
        )

    async def close(self) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self.page = None

    async def extract(self) -> list[str]:
        assert self.page is not None
        html = await self.page.content()
        return self.link_extractor.extract_keys(html, self.page.url)

    async def _navigate(self, url: str, *, required: bool) -> None:
        assert self.page is not None
        response = await self.page.goto(url, wait_until="domcontentloaded")
        status = response.status if response is not None else 200
        if status >= 400:
            if required:
                raise RuntimeError(f"Listing page {url} returned HTTP {status}")
            self.logger.warning("listing_page_http_error", url=url, status=status)


class InfiniteScrollDiscovery(BrowserDiscovery):
    """Scroll one listing page to the bottom and wait for more items to render."""

    async def open(self) -> None:
        await super().open()
        await self._navigate(self.settings.listing_url, required=True)

    async def advance(self, step: int) -> None:
        # Step 0 observes what the initial navigation rendered.
        if step == 0:
            return
        assert self.page is not None
        wait_ms = max(self.settings.scroll_delay * 1000, 1)
        previous_height = await self.page.evaluate("document.body.scrollHeight")
        await self.page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
        await self.page.wait_for_timeout(wait_ms)
        try:
            await self.page.wait_for_function(
                "(previous) => document.body.scrollHeight > previous",
                arg=previous_height,
                timeout=wait_ms,
            )
        except PlaywrightTimeoutError:
            pass
        try:
            await self.page.wait_for_load_state("networkidle", timeout=NETWORK_IDLE_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            pass


class PaginatedDiscovery(BrowserDiscovery):
    """Navigate to computed page URLs one page per step."""

    def page_url(self, page_number: int) -> str:
        if page_number == self.settings.first_page:
            return self.settings.listing_url
        return self.settings.page_url_template.format(base=self.settings.listing_url, page=page_number)

    async def advance(self, step: int) -> None:
        assert self.page is not None
        await self._navigate(self.page_url(self.settings.first_page + step), required=step == 0)
        if self.settings.page_delay:
            await self.page.wait_for_timeout(self.settings.page_delay * 1000)


def build_discovery(
    session: BrowserSession,
    settings: DiscoverySettings,
    checkpoints: CheckpointStore | None = None,
    logger: structlog.BoundLogger | None = None,
    stop_event: asyncio.Event | None = None,
) -> BrowserDiscovery:
    if settings.mode is DiscoveryMode.PAGINATE:
        return PaginatedDiscovery(session, settings, checkpoints, logger, stop_event)
    return InfiniteScrollDiscovery(session, settings, checkpoints, logger, stop_event)


__all__ = [
    "BrowserDiscovery",
    "DiscoveryStrategy",
    "InfiniteScrollDiscovery",
    "PaginatedDiscovery",
    "build_discovery",
]
