"""Bounded concurrent execution with input-ordered results."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

ResultCallback = Callable[[int, R], None]


async def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int,
    *,
    pacing_delay: float = 0.0,
    stop_event: asyncio.Event | None = None,
    on_result: ResultCallback | None = None,
) -> list[R]:
    """Run ``worker`` over ``items`` with at most ``concurrency`` calls in flight.

    Results are returned in input order. With ``concurrency == 1`` items run
    strictly one after another with ``pacing_delay`` seconds between them.
    Otherwise a new item is admitted as soon as any running one finishes.

    Once ``stop_event`` is set no further items are admitted; running workers
    finish and the returned list covers the admitted prefix of ``items``.
    ``on_result`` is called from the coordinating coroutine as each result
    arrives, in completion order.
    """

    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    if concurrency == 1:
        return await _run_sequential(items, worker, pacing_delay, stop_event, on_result)

    def stopped() -> bool:
        return stop_event is not None and stop_event.is_set()

    slots: list[R | None] = [None] * len(items)
    channel: asyncio.Queue[tuple[int, R | None, BaseException | None]] = asyncio.Queue()
    tasks: set[asyncio.Task[None]] = set()
    admitted = 0
    in_flight = 0
    failure: BaseException | None = None

    async def run_one(index: int, item: T) -> None:
        try:
            value = await worker(item)
        except Exception as exc:  # noqa: BLE001
            await channel.put((index, None, exc))
        else:
            await channel.put((index, value, None))

    try:
        while True:
            while (
                in_flight < concurrency
                and admitted < len(items)
                and failure is None
                and not stopped()
            ):
                task = asyncio.create_task(run_one(admitted, items[admitted]))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
                admitted += 1
                in_flight += 1
            if in_flight == 0:
                break
            index, value, error = await channel.get()
            in_flight -= 1
            if error is not None:
                failure = failure or error
                continue
            slots[index] = value
            if on_result is not None:
                on_result(index, value)
    finally:
        for task in tasks:
            task.cancel()
    if failure is not None:
        raise failure
    return slots[:admitted]  # type: ignore[return-value]


async def _run_sequential(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    pacing_delay: float,
    stop_event: asyncio.Event | None,
    on_result: ResultCallback | None,
) -> list[R]:
    results: list[R] = []
    for index, item in enumerate(items):
        if stop_event is not None and stop_event.is_set():
            break
        if index and pacing_delay > 0:
            await asyncio.sleep(pacing_delay)
        value = await worker(item)
        results.append(value)
        if on_result is not None:
            on_result(index, value)
    return results


__all__ = ["run_bounded"]
