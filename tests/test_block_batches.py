from __future__ import annotations

import pytest

from eigen_indexer.app.application.services.block_batches import (
    iter_block_batches,
    loop_through_blocks,
)


def test_worked_example():
    assert list(iter_block_batches(17_000_000, 17_010_000, 4999)) == [
        (17_000_000, 17_004_999),
        (17_004_999, 17_009_998),
        (17_009_998, 17_010_000),
    ]


@pytest.mark.parametrize(
    "first, last, size",
    [(0, 1, 1), (0, 10, 3), (17_000_000, 17_020_001, 4999), (5, 6, 100), (10, 20, 10)],
)
def test_batches_cover_range_in_order(first, last, size):
    batches = list(iter_block_batches(first, last, size))

    assert batches[0][0] == first
    assert batches[-1][1] == last
    for (a_from, a_to), (b_from, _) in zip(batches, batches[1:]):
        assert a_to == b_from
    for batch_from, batch_to in batches:
        assert batch_from < batch_to
        assert batch_to - batch_from <= size


@pytest.mark.parametrize("first, last", [(10, 10), (20, 10)])
def test_no_batches_when_nothing_to_sync(first, last):
    assert list(iter_block_batches(first, last, 50)) == []


@pytest.mark.parametrize("size", [0, -1])
def test_batch_size_must_be_positive(size):
    with pytest.raises(ValueError):
        list(iter_block_batches(0, 10, size))


def test_negative_blocks_rejected():
    with pytest.raises(ValueError):
        list(iter_block_batches(-1, 10, 5))


async def test_loop_awaits_callback_per_batch():
    seen: list[tuple[int, int]] = []

    async def cb(batch_from: int, batch_to: int) -> None:
        seen.append((batch_from, batch_to))

    last = await loop_through_blocks(0, 25, cb, 10)

    assert last == 25
    assert seen == [(0, 10), (10, 20), (20, 25)]


async def test_loop_stops_on_callback_error():
    seen: list[int] = []

    async def cb(batch_from: int, batch_to: int) -> None:
        seen.append(batch_from)
        if batch_from == 10:
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await loop_through_blocks(0, 40, cb, 10)
    assert seen == [0, 10]
