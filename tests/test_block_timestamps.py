from __future__ import annotations

from eigen_indexer.app.application.services.block_timestamps import BlockTimestampResolver

from tests.fakes import FakeChainReader, FakeTimestampIndex, block_time


async def test_known_blocks_are_not_fetched():
    reader = FakeChainReader()
    index = FakeTimestampIndex({10: block_time(10), 11: block_time(11)})
    resolver = BlockTimestampResolver(reader=reader, index=index)

    resolved = await resolver.resolve([10, 11, 11, 12], from_block=10, to_block=20)

    assert resolved == {10: block_time(10), 11: block_time(11), 12: block_time(12)}
    assert reader.timestamp_calls == [12]
    assert index.saved == [{12: block_time(12)}]


async def test_no_blocks_no_calls():
    reader = FakeChainReader()
    index = FakeTimestampIndex()

    assert await BlockTimestampResolver(reader=reader, index=index).resolve([], from_block=0, to_block=5) == {}
    assert reader.timestamp_calls == []
    assert index.saved == []
