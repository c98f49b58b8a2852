from __future__ import annotations

import pytest

from eigen_indexer.app.application.services.block_timestamps import BlockTimestampResolver
from eigen_indexer.app.application.services.sync_stream import StreamKey, get_stream
from eigen_indexer.app.domain.errors import RpcError, SyncAborted
from eigen_indexer.app.infrastructure.decoders.registry import LogDecoderRegistry
from eigen_indexer.app.infrastructure.factories.sync_stream_factory import SyncStreamDependencies
from eigen_indexer.app.interface.tasks import sync_streams_task

from tests.chain_logs import CONTRACT, deposit_log
from tests.fakes import FakeBulkWriter, FakeChainReader, FakeCursorStore, FakeTimestampIndex

GENESIS = 1000


def _patch_factory(monkeypatch, reader: FakeChainReader) -> None:
    stream = get_stream(StreamKey.DEPOSITS)
    deps = SyncStreamDependencies(
        stream=stream,
        addresses=(CONTRACT,),
        genesis_block=GENESIS,
        batch_size=50,
        reader=reader,
        decoders=LogDecoderRegistry.for_events(stream.events),
        writer=FakeBulkWriter(),
        cursors=FakeCursorStore(genesis_block=GENESIS),
        timestamps=BlockTimestampResolver(reader=reader, index=FakeTimestampIndex()),
    )
    monkeypatch.setattr(sync_streams_task, "sync_stream_factory", lambda **_: deps)


async def _run_one():
    return await sync_streams_task._sync_one(
        engine=None,  # type: ignore[arg-type]
        stream_key=StreamKey.DEPOSITS,
        from_block=None,
        to_block=None,
        on_decode_error="abort",
        backend="sqlalchemy",
    )


async def test_reader_is_closed_after_a_run(monkeypatch):
    reader = FakeChainReader([deposit_log(block_number=1005)], head=1050)
    _patch_factory(monkeypatch, reader)

    report = await _run_one()

    assert report.records_written == 1
    assert reader.closed is True


async def test_reader_is_closed_when_the_run_aborts(monkeypatch):
    reader = FakeChainReader(head_error=RpcError("timeout", "eth_blockNumber timed out"))
    _patch_factory(monkeypatch, reader)

    with pytest.raises(SyncAborted):
        await _run_one()

    assert reader.closed is True
