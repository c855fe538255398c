"""Run orchestrator wiring discovery, batch fetching, checkpoints and export."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import structlog

from .config import RunConfig
from .engine import (
    ArticleExtractor,
    BatchPipeline,
    BrowserSession,
    CheckpointStore,
    DiscoveryResult,
    DiscoveryStrategy,
    FetchResult,
    FetchRetryEngine,
    build_discovery,
    read_key_file,
)
from .engine.exporter import ResultExporter, run_timestamp
from .engine.parser import RecordExtractor
from .errors import SourceUnreachableError
from .ui import ProgressReporter


@dataclass(slots=True)
class RunSummary:
    """Counts and artifacts produced by one run."""

    collected: int
    results: list[FetchResult] = field(default_factory=list)
    export_paths: dict[str, Path] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.success)

    @property
    def failed_keys_path(self) -> Path | None:
        return self.export_paths.get("failed")

    def as_dict(self) -> dict[str, object]:
        return {
            "collected": self.collected,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "exports": {kind: str(path) for kind, path in self.export_paths.items()},
        }


class BulkScraper:
    """Central coordinator for collect → scrape → export runs."""

    def __init__(
        self,
        config: RunConfig,
        base_dir: Path | None = None,
        *,
        session: BrowserSession | None = None,
        extractor: RecordExtractor | None = None,
        logger: structlog.BoundLogger | None = None,
        progress_enabled: bool = False,
    ) -> None:
        self.config = config
        self.output_dir = config.resolved_output_dir(base_dir or Path.cwd())
        self.logger = logger or structlog.get_logger("bulk_scraper")
        self.stop_event = asyncio.Event()
        self.progress_enabled = progress_enabled
        self.session = session or BrowserSession(
            headless=config.fetch.headless,
            viewport=config.fetch.viewport,
            logger=self.logger.bind(component="browser"),
        )
        self.checkpoints = CheckpointStore(
            self.output_dir,
            keys_file=config.discovery.output_file or config.export.keys_file,
            progress_file=config.export.progress_file,
            logger=self.logger.bind(component="checkpoint"),
        )
        self.engine = FetchRetryEngine(
            self.session,
            extractor or ArticleExtractor(config.fetch.selectors),
            logger=self.logger.bind(component="fetcher"),
            stop_event=self.stop_event,
        )
        self.exporter = ResultExporter(self.output_dir, logger=self.logger.bind(component="exporter"))

    async def __aenter__(self) -> "BulkScraper":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def request_stop(self) -> None:
        """Stop admitting new work; in-flight fetches finish their current attempt."""

        if not self.stop_event.is_set():
            self.logger.warning("stop_requested")
        self.stop_event.set()

    async def close(self) -> None:
        await self.session.close()

    # ------------------------------------------------------------------
    def _discovery(self) -> DiscoveryStrategy:
        return build_discovery(
            self.session,
            self.config.discovery,
            self.checkpoints,
            logger=self.logger.bind(component="discovery"),
            stop_event=self.stop_event,
        )

    def _pipeline(self, checkpoints: CheckpointStore | None = None) -> BatchPipeline:
        return BatchPipeline(
            self.engine,
            self.config.pipeline,
            checkpoints=checkpoints or self.checkpoints,
            logger=self.logger.bind(component="pipeline"),
            stop_event=self.stop_event,
            progress=ProgressReporter(enabled=self.progress_enabled),
        )

    # ------------------------------------------------------------------
    async def collect_urls(self) -> DiscoveryResult:
        result = await self._discovery().discover(self.config.discovery.target_count)
        self.logger.info(
            "collection_finished",
            collected=result.total_collected,
            new=result.new_keys,
            steps=result.steps,
            success=result.success,
        )
        if not result.success:
            raise SourceUnreachableError(result)
        return result

    async def run_full_pipeline(self) -> RunSummary:
        discovery = await self.collect_urls()
        return await self._scrape(discovery.keys, "final")

    async def scrape_from_file(self, path: Path) -> RunSummary:
        keys = read_key_file(path)
        self.logger.info("keys_loaded", path=str(path), total=len(keys))
        return await self._scrape(keys, "final")

    async def retry_failed_urls(self, path: Path) -> RunSummary:
        keys = read_key_file(path)
        self.logger.info("retrying_failed_keys", path=str(path), total=len(keys))
        retry_checkpoints = CheckpointStore(
            self.output_dir,
            keys_file=self.config.export.keys_file,
            progress_file=f"{self.config.export.output_prefix}_retry_progress.json",
            logger=self.logger.bind(component="checkpoint"),
        )
        results = await self._pipeline(retry_checkpoints).retry_failed(keys, self.config.fetch)
        summary = self._export(results, len(keys), "retry_results")
        self.logger.info("retry_finished", recovered=summary.succeeded, still_failed=summary.failed)
        return summary

    # ------------------------------------------------------------------
    async def _scrape(self, keys: Sequence[str], label: str) -> RunSummary:
        previous: list[FetchResult] = []
        pending = list(keys)
        if self.config.discovery.resume_from_file:
            checkpoint = self.checkpoints.load()
            done = checkpoint.succeeded_keys
            previous = [result for result in checkpoint.results if result.success]
            pending = [key for key in keys if key not in done]
            if previous:
                self.logger.info("resuming_fetch", already_succeeded=len(previous), pending=len(pending))
        fresh = await self._pipeline().process_all(pending, self.config.fetch, previous)
        return self._export([*previous, *fresh], len(keys), f"{self.config.export.output_prefix}_{label}")

    def _export(self, results: list[FetchResult], collected: int, base_name: str) -> RunSummary:
        stamp = run_timestamp()
        paths = self.exporter.export(
            results, self.config.export.export_format, f"{base_name}_{stamp}", timestamp=stamp
        )
        summary = RunSummary(collected=collected, results=results, export_paths=paths)
        self.logger.info("run_summary", **summary.as_dict())
        return summary


__all__ = ["BulkScraper", "RunSummary"]
