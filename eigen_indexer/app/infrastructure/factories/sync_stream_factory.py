from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from eigen_indexer.app.application.services.block_timestamps import BlockTimestampResolver
from eigen_indexer.app.application.services.sync_stream import SyncStreamSpec
from eigen_indexer.app.config import settings
from eigen_indexer.app.domain.networks import Network
from eigen_indexer.app.domain.ports.out import (
    BulkWriter,
    ChainReader,
    EventDecoderRegistry,
    SyncCursorStore,
)
from eigen_indexer.app.infrastructure.adapters.block_timestamp_index import (
    SqlAlchemyBlockTimestampIndex,
)
from eigen_indexer.app.infrastructure.adapters.bulk_writer import SqlAlchemyBulkWriter
from eigen_indexer.app.infrastructure.adapters.sync_cursor_store import SqlAlchemySyncCursorStore
from eigen_indexer.app.infrastructure.decoders.registry import LogDecoderRegistry
from eigen_indexer.app.infrastructure.fetchers.web3_chain_reader import (
    Web3ChainReader,
    create_async_web3,
)


@dataclass(frozen=True)
class SyncStreamDependencies:
    """Everything `sync_stream` needs for one stream, wired for one backend."""

    stream: SyncStreamSpec
    addresses: tuple[str, ...]
    genesis_block: int
    batch_size: int
    reader: ChainReader
    decoders: EventDecoderRegistry
    writer: BulkWriter
    cursors: SyncCursorStore
    timestamps: BlockTimestampResolver


SyncStreamFactory = Callable[[AsyncEngine, SyncStreamSpec], SyncStreamDependencies]

_SYNC_STREAM_REGISTRY: Dict[str, SyncStreamFactory] = {}


def _make_sqlalchemy_dependencies(
    engine: AsyncEngine,
    stream: SyncStreamSpec,
    *,
    network: Network,
    rpc_url: str,
    rpc_timeout_s: float,
    batch_size: int,
    chunk_size: int,
) -> SyncStreamDependencies:
    """
    Wire dependencies for SQLAlchemy backend:
    - AsyncWeb3 chain reader (network RPC URL)
    - ABI decoders for the stream's events, routed by topic0
    - settings-table cursors, evm_block_data timestamp cache, chunked bulk writer
    """
    w3 = create_async_web3(rpc_url, timeout_s=rpc_timeout_s)
    reader = Web3ChainReader(w3=w3)

    return SyncStreamDependencies(
        stream=stream,
        addresses=(stream.contract_address(network.contracts),),
        genesis_block=network.genesis_block,
        batch_size=batch_size,
        reader=reader,
        decoders=LogDecoderRegistry.for_events(stream.events),
        writer=SqlAlchemyBulkWriter(engine, chunk_size=chunk_size),
        cursors=SqlAlchemySyncCursorStore(engine, genesis_block=network.genesis_block),
        timestamps=BlockTimestampResolver(reader=reader, index=SqlAlchemyBlockTimestampIndex(engine)),
    )


# Register backends
_SYNC_STREAM_REGISTRY["sqlalchemy"] = lambda engine, stream: _make_sqlalchemy_dependencies(
    engine,
    stream,
    network=settings.network,
    rpc_url=settings.rpc_url,
    rpc_timeout_s=settings.rpc_timeout_s,
    batch_size=settings.sync_batch_size,
    chunk_size=settings.write_chunk_size,
)


def sync_stream_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    stream: SyncStreamSpec,
) -> SyncStreamDependencies:
    try:
        factory = _SYNC_STREAM_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported sync stream backend: {backend!r}")
    return factory(engine, stream)
