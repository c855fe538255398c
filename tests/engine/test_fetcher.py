from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import pytest

from bulk_scraper.config import FetchSettings
from bulk_scraper.engine import ArticleRecord, FetchRetryEngine
from bulk_scraper.errors import ExtractionError

ARTICLE_URL = "https://news.example.com/news/article_1.html"


class FlakyExtractor:
    """Fails the first ``failures`` calls, then returns a record."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    def extract(self, html: str, url: str) -> ArticleRecord:
        self.calls += 1
        if self.calls <= self.failures:
            raise ExtractionError(f"attempt {self.calls} failed")
        return ArticleRecord(url=url, title="Budget passed")


@pytest.fixture
def recorded_sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    delays: list[float] = []
    original = asyncio.sleep

    async def fake_sleep(delay: float, result=None):
        delays.append(delay)
        return await original(0, result)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays


def test_success_after_retries_reports_attempt_count(fake_session, fast_fetch_settings) -> None:
    engine = FetchRetryEngine(fake_session(), FlakyExtractor(failures=2))

    result = asyncio.run(engine.fetch_one(ARTICLE_URL, fast_fetch_settings))

    assert result.success is True
    assert result.attempts == 3
    assert result.payload.title == "Budget passed"
    assert result.error is None


def test_exhausted_attempts_yield_placeholder_and_last_error(fake_session, fast_fetch_settings) -> None:
    engine = FetchRetryEngine(fake_session(), FlakyExtractor(failures=10))

    result = asyncio.run(engine.fetch_one(ARTICLE_URL, fast_fetch_settings))

    assert result.success is False
    assert result.attempts == 3
    assert result.error == "attempt 3 failed"
    assert result.payload.url == ARTICLE_URL
    assert result.payload.title == ""
    assert result.payload.category == ()


def test_backoff_grows_linearly_between_attempts(fake_session, recorded_sleeps: list[float]) -> None:
    settings = FetchSettings(timeout=1.0, retries=4, delay=0.5, wait_selector=None)
    engine = FetchRetryEngine(fake_session(), FlakyExtractor(failures=10))

    asyncio.run(engine.fetch_one(ARTICLE_URL, settings))

    # no sleep after the final attempt
    assert recorded_sleeps == [0.5, 1.0, 1.5]


def test_every_attempt_uses_a_fresh_isolated_page(fake_session, fast_fetch_settings) -> None:
    session = fake_session()
    engine = FetchRetryEngine(session, FlakyExtractor(failures=10))

    asyncio.run(engine.fetch_one(ARTICLE_URL, fast_fetch_settings))

    assert len(session.pages) == 3
    assert len({id(page) for page in session.pages}) == 3
    assert all(page.visited == [ARTICLE_URL] for page in session.pages)
    assert session.open_contexts == 0


def test_attempt_exceeding_timeout_is_recorded_as_failure() -> None:
    class HangingPage:
        async def goto(self, url, **_kwargs):
            await asyncio.Event().wait()

    class HangingSession:
        def __init__(self) -> None:
            self.released = 0

        @asynccontextmanager
        async def isolated_page(self, timeout):
            try:
                yield HangingPage()
            finally:
                self.released += 1

    session = HangingSession()
    settings = FetchSettings(timeout=0.05, retries=2, delay=0.0, wait_selector=None)
    engine = FetchRetryEngine(session, FlakyExtractor(failures=0))

    result = asyncio.run(engine.fetch_one(ARTICLE_URL, settings))

    assert result.success is False
    assert result.attempts == 2
    assert result.error == "Timed out after 0.05s"
    assert session.released == 2


def test_default_extractor_parses_article_markup(fake_session, fast_fetch_settings) -> None:
    html = """
    <html><body>
      <div class="asset"><div class="asset-header"><h1>Council approves budget</h1></div>
      <div class="asset-body"><p>First paragraph.</p><p>Second paragraph.</p></div></div>
    </body></html>
    """
    engine = FetchRetryEngine(fake_session(html))

    result = asyncio.run(engine.fetch_one(ARTICLE_URL, fast_fetch_settings))

    assert result.success is True
    assert result.attempts == 1
    assert result.payload.title == "Council approves budget"
    assert result.payload.content == "First paragraph.\n\nSecond paragraph."


def test_stop_request_abandons_remaining_retries(fake_session) -> None:
    class StoppingExtractor(FlakyExtractor):
        def __init__(self, stop: asyncio.Event) -> None:
            super().__init__(failures=10)
            self.stop = stop

        def extract(self, html: str, url: str) -> ArticleRecord:
            self.stop.set()
            return super().extract(html, url)

    settings = FetchSettings(timeout=1.0, retries=4, delay=0.0, wait_selector=None)

    async def run():
        stop = asyncio.Event()
        session = fake_session()
        extractor = StoppingExtractor(stop)
        engine = FetchRetryEngine(session, extractor, stop_event=stop)
        return await engine.fetch_one(ARTICLE_URL, settings), session, extractor

    result, session, extractor = asyncio.run(run())

    assert result.success is False
    assert result.attempts == 1
    assert result.error == "attempt 1 failed"
    assert extractor.calls == 1
    assert len(session.pages) == 1
