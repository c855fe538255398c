"""Shared fixtures: fast settings, scripted discovery sources and fake browser sessions."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Sequence

import pytest

from bulk_scraper.config import (
    DiscoverySettings,
    ExportSettings,
    FetchSettings,
    PipelineSettings,
    RunConfig,
)
from bulk_scraper.engine import ArticleRecord, CheckpointStore, DiscoveryStrategy, FetchResult


class ScriptedDiscovery(DiscoveryStrategy):
    """Discovery over a fixed list of pages; page ``i`` is visible after step ``i``.

    Steps past the end of the script keep showing the last page. Setting
    ``fail_at`` makes ``advance`` raise at that step to simulate an
    unreachable source.
    """

    def __init__(
        self,
        pages: Sequence[Sequence[str]],
        settings: DiscoverySettings,
        checkpoints: CheckpointStore | None = None,
        fail_at: int | None = None,
    ) -> None:
        super().__init__(settings, checkpoints)
        self.pages = [list(page) for page in pages]
        self.fail_at = fail_at
        self.current: list[str] = []
        self.advanced: list[int] = []
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def advance(self, step: int) -> None:
        if self.fail_at is not None and step >= self.fail_at:
            raise ConnectionError("net::ERR_NAME_NOT_RESOLVED")
        self.advanced.append(step)
        self.current = self.pages[min(step, len(self.pages) - 1)] if self.pages else []

    async def extract(self) -> list[str]:
        return list(self.current)


class FakeResponse:
    def __init__(self, status: int) -> None:
        self.status = status


class FakePage:
    """Records navigation and scrolling; ``statuses`` maps URLs to HTTP codes."""

    def __init__(
        self,
        html: str,
        statuses: dict[str, int] | None = None,
        documents: dict[str, str] | None = None,
    ) -> None:
        self.html = html
        self.statuses = statuses or {}
        self.documents = documents or {}
        self.url = "about:blank"
        self.visited: list[str] = []
        self.calls: list[tuple[str, Any]] = []

    async def goto(self, url: str, **_kwargs: Any) -> FakeResponse | None:
        self.visited.append(url)
        self.url = url
        status = self.statuses.get(url)
        return FakeResponse(status) if status is not None else None

    async def wait_for_selector(self, _selector: str) -> None:
        return None

    async def content(self) -> str:
        return self.documents.get(self.url, self.html)

    async def evaluate(self, expression: str) -> int:
        self.calls.append(("evaluate", expression))
        return 1000

    async def wait_for_timeout(self, timeout: float) -> None:
        self.calls.append(("wait_for_timeout", timeout))

    async def wait_for_function(self, expression: str, arg: Any = None, timeout: float | None = None) -> None:
        self.calls.append(("wait_for_function", arg))

    async def wait_for_load_state(self, state: str, timeout: float | None = None) -> None:
        self.calls.append(("wait_for_load_state", state))


class FakeSession:
    """Stand-in for BrowserSession recording every isolated page it hands out."""

    def __init__(
        self,
        html: str = "<html><body></body></html>",
        statuses: dict[str, int] | None = None,
        documents: dict[str, str] | None = None,
    ) -> None:
        self.html = html
        self.statuses = statuses
        self.documents = documents
        self.pages: list[FakePage] = []
        self.open_contexts = 0
        self.closed = False

    @asynccontextmanager
    async def isolated_page(self, timeout: float) -> AsyncIterator[FakePage]:  # noqa: ARG002
        page = FakePage(self.html, self.statuses, self.documents)
        self.pages.append(page)
        self.open_contexts += 1
        try:
            yield page
        finally:
            self.open_contexts -= 1

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def discovery_settings() -> Callable[..., DiscoverySettings]:
    def _builder(**overrides: Any) -> DiscoverySettings:
        base: dict[str, Any] = {
            "listing_url": "https://news.example.com/news/",
            "target_count": 100,
            "max_steps": 20,
            "max_stagnant_steps": 3,
            "save_interval": 100,
            "save_every_steps": 10,
            "resume_from_file": True,
            "allowed_hosts": ["news.example.com"],
        }
        base.update(overrides)
        return DiscoverySettings(**base)

    return _builder


@pytest.fixture
def fast_fetch_settings() -> FetchSettings:
    return FetchSettings(timeout=1.0, retries=3, delay=0.0, wait_selector=None)


@pytest.fixture
def run_config(tmp_path: Path) -> Callable[..., RunConfig]:
    def _builder(**sections: Any) -> RunConfig:
        return RunConfig(
            discovery=sections.get("discovery", DiscoverySettings(resume_from_file=False)),
            fetch=sections.get("fetch", FetchSettings(timeout=1.0, retries=2, delay=0.0, wait_selector=None)),
            pipeline=sections.get("pipeline", PipelineSettings(batch_size=2, concurrency=2, batch_pause=0.0)),
            export=sections.get(
                "export", ExportSettings(output_dir=tmp_path / "output", output_prefix="demo")
            ),
        )

    return _builder


@pytest.fixture
def make_result() -> Callable[..., FetchResult]:
    def _builder(key: str, success: bool = True, **fields: Any) -> FetchResult:
        if success:
            record = ArticleRecord(url=key, title=fields.pop("title", f"Title for {key}"), **fields)
            return FetchResult(key=key, success=True, payload=record)
        return FetchResult(
            key=key,
            success=False,
            payload=ArticleRecord.placeholder(key),
            error=fields.get("error", "boom"),
        )

    return _builder


@pytest.fixture
def scripted_discovery() -> type[ScriptedDiscovery]:
    return ScriptedDiscovery


@pytest.fixture
def fake_session() -> Callable[..., FakeSession]:
    return FakeSession
