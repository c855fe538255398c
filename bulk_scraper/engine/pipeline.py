"""Batch pipeline feeding keys through the scheduler and checkpointing results."""

from __future__ import annotations

import asyncio
from typing import Protocol, Sequence

import structlog

from ..config import FetchSettings, PipelineSettings
from .models import FetchResult
from .scheduler import run_bounded


class ResultCheckpoint(Protocol):
    def save_results(self, results: Sequence[FetchResult], batch_number: int) -> object:
        """Persist the accumulated results."""


class FetchEngine(Protocol):
    async def fetch_one(self, key: str, settings: FetchSettings) -> FetchResult:
        """Fetch one key and never raise."""


class ProgressSink(Protocol):
    def start(self, total: int) -> None: ...

    def advance(self, key: str, succeeded: bool) -> None: ...

    def close(self) -> None: ...


class BatchPipeline:
    """Process keys in fixed-size, strictly sequential batches."""

    def __init__(
        self,
        engine: FetchEngine,
        settings: PipelineSettings,
        checkpoints: ResultCheckpoint | None = None,
        logger: structlog.BoundLogger | None = None,
        stop_event: asyncio.Event | None = None,
        progress: ProgressSink | None = None,
    ) -> None:
        self.engine = engine
        self.settings = settings
        self.checkpoints = checkpoints
        self.logger = logger or structlog.get_logger("bulk_scraper.pipeline")
        self.stop_event = stop_event
        self.progress = progress

    def batches(self, keys: Sequence[str]) -> list[list[str]]:
        size = self.settings.batch_size
        return [list(keys[start : start + size]) for start in range(0, len(keys), size)]

    async def process_all(
        self,
        keys: Sequence[str],
        fetch_settings: FetchSettings,
        previous_results: Sequence[FetchResult] = (),
    ) -> list[FetchResult]:
        """Fetch ``keys`` and return their results in input order.

        ``previous_results`` (e.g. successes carried over from a resumed run)
        are included in every results checkpoint but not in the return value.
        """

        batches = self.batches(keys)
        total_batches = len(batches)
        results: list[FetchResult] = []
        pacing = fetch_settings.delay if self.settings.concurrency == 1 else 0.0
        self.logger.info(
            "pipeline_started",
            keys=len(keys),
            batches=total_batches,
            batch_size=self.settings.batch_size,
            concurrency=self.settings.concurrency,
            retries=fetch_settings.retries,
            timeout=fetch_settings.timeout,
        )
        if self.progress is not None:
            self.progress.start(len(keys))

        async def worker(key: str) -> FetchResult:
            return await self.engine.fetch_one(key, fetch_settings)

        try:
            for batch_number, batch in enumerate(batches, start=1):
                batch_results = await run_bounded(
                    batch,
                    worker,
                    self.settings.concurrency,
                    pacing_delay=pacing,
                    stop_event=self.stop_event,
                    on_result=self._report,
                )
                results.extend(batch_results)
                succeeded = sum(1 for result in batch_results if result.success)
                self.logger.info(
                    "batch_complete",
                    batch=batch_number,
                    total_batches=total_batches,
                    succeeded=succeeded,
                    size=len(batch),
                )
                stopping = self._stopping()
                is_final = batch_number == total_batches or stopping
                if batch_number % self.settings.checkpoint_every == 0 or is_final:
                    self._checkpoint([*previous_results, *results], batch_number)
                if stopping:
                    self.logger.warning("pipeline_stop_requested", batch=batch_number, completed=len(results))
                    break
                if batch_number < total_batches and self.settings.batch_pause > 0:
                    await asyncio.sleep(self.settings.batch_pause)
        finally:
            if self.progress is not None:
                self.progress.close()
        return results

    async def retry_failed(
        self,
        failed_keys: Sequence[str],
        fetch_settings: FetchSettings,
        previous_results: Sequence[FetchResult] = (),
    ) -> list[FetchResult]:
        """Re-run failed keys with the amplified retry/timeout policy."""

        amplified = fetch_settings.amplified()
        self.logger.info(
            "retry_policy_amplified",
            retries=amplified.retries,
            timeout=amplified.timeout,
            keys=len(failed_keys),
        )
        return await self.process_all(failed_keys, amplified, previous_results)

    def _stopping(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    def _report(self, _index: int, result: FetchResult) -> None:
        if self.progress is not None:
            self.progress.advance(result.key, result.success)

    def _checkpoint(self, results: list[FetchResult], batch_number: int) -> None:
        if self.checkpoints is None:
            return
        self.checkpoints.save_results(results, batch_number)


__all__ = ["BatchPipeline"]
