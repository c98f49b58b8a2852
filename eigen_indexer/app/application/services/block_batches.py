from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from typing import Final

DEFAULT_BATCH_SIZE: Final[int] = 4999

BatchCallback = Callable[[int, int], Awaitable[None]]


def iter_block_batches(
    first_block: int,
    last_block: int,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Iterator[tuple[int, int]]:
    """
    Split [first_block, last_block] into closed (batch_from, batch_to) windows.

    Adjacent windows share their boundary block: the next window starts at the
    previous window's `batch_to`. Writes are idempotent, so the boundary block
    being read twice is harmless. Nothing is yielded when first_block >= last_block.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    if first_block < 0 or last_block < 0:
        raise ValueError("Block numbers must be non-negative")

    current = first_block
    while current < last_block:
        batch_to = min(current + batch_size, last_block)
        yield current, batch_to
        current = batch_to


async def loop_through_blocks(
    first_block: int,
    last_block: int,
    cb: BatchCallback,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Await `cb(batch_from, batch_to)` for every window in ascending order; returns last_block."""
    for batch_from, batch_to in iter_block_batches(first_block, last_block, batch_size):
        await cb(batch_from, batch_to)
    return last_block
