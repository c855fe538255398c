"""Per-key fetching with isolated attempts and linear backoff."""

from __future__ import annotations

import asyncio

import structlog

from ..config import FetchSettings
from .browser import BrowserSession
from .models import FetchAttempt, FetchResult
from .parser import ArticleExtractor, RecordExtractor


class FetchRetryEngine:
    """Fetch one key at a time, folding every attempt into a FetchResult."""

    def __init__(
        self,
        session: BrowserSession,
        extractor: RecordExtractor | None = None,
        logger: structlog.BoundLogger | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self.session = session
        self.extractor = extractor or ArticleExtractor()
        self.logger = logger or structlog.get_logger("bulk_scraper.fetcher")
        self.stop_event = stop_event

    async def fetch_one(self, key: str, settings: FetchSettings) -> FetchResult:
        """Return the outcome for ``key``. Failures are reported, never raised.

        Once the stop event is set no further attempts are started; the
        attempts made so far decide the result.
        """

        attempts: list[FetchAttempt] = []
        for attempt_number in range(1, settings.retries + 1):
            if attempt_number > 1 and self._stopping():
                self.logger.warning("fetch_retries_abandoned", url=key, attempts=len(attempts))
                break
            attempt = await self._attempt(key, attempt_number, settings)
            attempts.append(attempt)
            if attempt.succeeded:
                break
            self.logger.warning(
                "fetch_attempt_failed",
                url=key,
                attempt=attempt_number,
                max_attempts=settings.retries,
                error=attempt.error,
            )
            if attempt_number < settings.retries:
                await asyncio.sleep(settings.delay * attempt_number)
        result = FetchResult.from_attempts(attempts)
        if result.success:
            self.logger.info("fetch_succeeded", url=key, attempts=result.attempts, title=result.payload.title)
        else:
            self.logger.error("fetch_failed", url=key, attempts=result.attempts, error=result.error)
        return result

    def _stopping(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def _attempt(self, key: str, attempt_number: int, settings: FetchSettings) -> FetchAttempt:
        try:
            html = await asyncio.wait_for(self._load_document(key, settings), timeout=settings.timeout)
            record = self.extractor.extract(html, key)
        except asyncio.TimeoutError:
            return FetchAttempt(key, attempt_number, error=f"Timed out after {settings.timeout:g}s")
        except Exception as exc:  # noqa: BLE001
            return FetchAttempt(key, attempt_number, error=str(exc) or exc.__class__.__name__)
        return FetchAttempt(key, attempt_number, payload=record)

    async def _load_document(self, key: str, settings: FetchSettings) -> str:
        async with self.session.isolated_page(settings.timeout) as page:
            await page.goto(key, wait_until="domcontentloaded")
            if settings.wait_selector:
                await page.wait_for_selector(settings.wait_selector)
            return await page.content()


__all__ = ["FetchRetryEngine"]
