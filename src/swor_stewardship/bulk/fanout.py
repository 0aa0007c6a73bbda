"""Bounded fan-out/fan-in over fixed-size batches.

Items are split into batches of `batch_size`. Items inside a batch run
concurrently; batches run one after another. Every batch is a strict join:
asyncio.gather(..., return_exceptions=True) waits for all items, so one
failing item never cancels its siblings. A batch in flight is shielded, so a
caller that gets cancelled mid-batch does not leave items half-applied; later
batches are simply not started.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class ItemOutcome(Generic[T, R]):
    """Result of running the worker on one item."""

    item: T
    result: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


BatchCallback = Callable[[list[ItemOutcome[T, R]]], Awaitable[None]]


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive chunks of at most `size`."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def unique_ids(ids: Sequence[str]) -> list[str]:
    """Strip ids, drop blanks and keep the first occurrence of each, in order."""
    seen: dict[str, None] = {}
    for raw in ids:
        cleaned = (raw or "").strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    batch_size: int = 5,
    on_batch_done: BatchCallback[T, R] | None = None,
) -> list[ItemOutcome[T, R]]:
    """Run `worker` over `items` in sequential batches of concurrent calls.

    Args:
        items: Items to process, in order.
        worker: Coroutine function applied to each item.
        batch_size: Items in flight together.
        on_batch_done: Awaited with each batch's outcomes as soon as it completes.

    Returns:
        One ItemOutcome per item, in input order.
    """
    outcomes: list[ItemOutcome[T, R]] = []
    for batch in chunked(items, batch_size):
        gathered = asyncio.gather(*(worker(item) for item in batch), return_exceptions=True)
        results = await asyncio.shield(gathered)

        batch_outcomes: list[ItemOutcome[T, R]] = []
        for item, result in zip(batch, results, strict=True):
            if isinstance(result, BaseException):
                batch_outcomes.append(ItemOutcome(item=item, error=result))
            else:
                batch_outcomes.append(ItemOutcome(item=item, result=result))
        outcomes.extend(batch_outcomes)

        if on_batch_done is not None:
            await on_batch_done(batch_outcomes)
    return outcomes
