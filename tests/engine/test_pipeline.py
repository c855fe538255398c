from __future__ import annotations

import asyncio

from bulk_scraper.config import FetchSettings, PipelineSettings
from bulk_scraper.engine import ArticleRecord, BatchPipeline, FetchResult


class ScriptedEngine:
    """Fetch engine that fails any key listed in ``failing``."""

    def __init__(self, failing: set[str] | None = None, stop_after: int | None = None) -> None:
        self.failing = failing or set()
        self.stop_after = stop_after
        self.stop_event: asyncio.Event | None = None
        self.calls: list[tuple[str, FetchSettings]] = []

    async def fetch_one(self, key: str, settings: FetchSettings) -> FetchResult:
        self.calls.append((key, settings))
        if self.stop_after is not None and len(self.calls) >= self.stop_after and self.stop_event is not None:
            self.stop_event.set()
        await asyncio.sleep(0)
        if key in self.failing:
            return FetchResult(key=key, success=False, payload=ArticleRecord.placeholder(key), error="boom")
        return FetchResult(key=key, success=True, payload=ArticleRecord(url=key, title=key))


class RecordingCheckpoints:
    def __init__(self) -> None:
        self.saves: list[tuple[int, list[str]]] = []

    def save_results(self, results, batch_number):
        self.saves.append((batch_number, [result.key for result in results]))


class RecordingProgress:
    def __init__(self) -> None:
        self.total: int | None = None
        self.events: list[tuple[str, bool]] = []
        self.closed = False

    def start(self, total: int) -> None:
        self.total = total

    def advance(self, key: str, succeeded: bool) -> None:
        self.events.append((key, succeeded))

    def close(self) -> None:
        self.closed = True


def _keys(count: int) -> list[str]:
    return [f"https://news.example.com/news/article_{index}.html" for index in range(count)]


def _settings(**overrides) -> PipelineSettings:
    base = {"batch_size": 50, "concurrency": 3, "checkpoint_every": 5, "batch_pause": 0.0}
    base.update(overrides)
    return PipelineSettings(**base)


def test_batches_split_keys_in_order() -> None:
    pipeline = BatchPipeline(ScriptedEngine(), _settings(batch_size=50))
    batches = pipeline.batches(_keys(120))
    assert [len(batch) for batch in batches] == [50, 50, 20]
    assert [key for batch in batches for key in batch] == _keys(120)


def test_results_cover_every_key_in_input_order(fast_fetch_settings) -> None:
    keys = _keys(7)
    engine = ScriptedEngine(failing={keys[2], keys[5]})
    pipeline = BatchPipeline(engine, _settings(batch_size=3, concurrency=2))

    results = asyncio.run(pipeline.process_all(keys, fast_fetch_settings))

    assert [result.key for result in results] == keys
    assert [result.success for result in results] == [True, True, False, True, True, False, True]


def test_checkpoint_written_only_on_cadence_or_final_batch(fast_fetch_settings) -> None:
    checkpoints = RecordingCheckpoints()
    pipeline = BatchPipeline(ScriptedEngine(), _settings(), checkpoints=checkpoints)

    asyncio.run(pipeline.process_all(_keys(120), fast_fetch_settings))

    assert len(checkpoints.saves) == 1
    batch_number, saved = checkpoints.saves[0]
    assert batch_number == 3
    assert saved == _keys(120)


def test_checkpoint_cadence_and_carried_over_results(fast_fetch_settings, make_result) -> None:
    checkpoints = RecordingCheckpoints()
    previous = [make_result("https://news.example.com/news/article_done.html")]
    pipeline = BatchPipeline(
        ScriptedEngine(), _settings(batch_size=2, checkpoint_every=2), checkpoints=checkpoints
    )

    results = asyncio.run(pipeline.process_all(_keys(9), fast_fetch_settings, previous))

    assert [number for number, _ in checkpoints.saves] == [2, 4, 5]
    assert checkpoints.saves[-1][1][0] == "https://news.example.com/news/article_done.html"
    assert len(checkpoints.saves[-1][1]) == 10
    assert len(results) == 9


def test_progress_sink_sees_every_result(fast_fetch_settings) -> None:
    keys = _keys(4)
    progress = RecordingProgress()
    pipeline = BatchPipeline(ScriptedEngine(failing={keys[0]}), _settings(batch_size=2), progress=progress)

    asyncio.run(pipeline.process_all(keys, fast_fetch_settings))

    assert progress.total == 4
    assert progress.closed
    assert sorted(key for key, _ in progress.events) == sorted(keys)
    assert dict(progress.events)[keys[0]] is False
    assert sum(1 for _, succeeded in progress.events if succeeded) == 3


def test_stop_request_checkpoints_and_ends_after_current_batch(fast_fetch_settings) -> None:
    async def scenario():
        stop = asyncio.Event()
        engine = ScriptedEngine(stop_after=2)
        engine.stop_event = stop
        checkpoints = RecordingCheckpoints()
        pipeline = BatchPipeline(
            engine, _settings(batch_size=4, concurrency=1), checkpoints=checkpoints, stop_event=stop
        )
        results = await pipeline.process_all(_keys(12), fast_fetch_settings)
        return results, checkpoints

    results, checkpoints = asyncio.run(scenario())

    assert [result.key for result in results] == _keys(2)
    assert checkpoints.saves == [(1, _keys(2))]


def test_retry_failed_uses_amplified_policy_without_mutating_caller() -> None:
    engine = ScriptedEngine()
    pipeline = BatchPipeline(engine, _settings())
    original = FetchSettings(timeout=30.0, retries=3, delay=0.0, wait_selector=None)

    results = asyncio.run(pipeline.retry_failed(_keys(2), original))

    assert all(result.success for result in results)
    used = {id(settings): settings for _, settings in engine.calls}
    assert len(used) == 1
    amplified = next(iter(used.values()))
    assert amplified.retries == 5
    assert amplified.timeout == 45.0
    assert original.retries == 3
    assert original.timeout == 30.0


def test_amplified_policy_keeps_larger_configured_values() -> None:
    amplified = FetchSettings(timeout=40.0, retries=6).amplified()
    assert amplified.retries == 8
    assert amplified.timeout == 60.0
