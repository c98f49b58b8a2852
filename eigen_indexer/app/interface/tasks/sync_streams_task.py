from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from eigen_indexer.app.application.services.sync_stream import (
    DecodeErrorPolicy,
    StreamKey,
    get_stream,
    sync_stream,
)
from eigen_indexer.app.domain.models import SyncReport
from eigen_indexer.app.infrastructure.db.engine import create_app_async_engine
from eigen_indexer.app.infrastructure.factories.sync_stream_factory import sync_stream_factory

logger = logging.getLogger(__name__)


async def _sync_one(
    *,
    engine: AsyncEngine,
    stream_key: StreamKey | str,
    from_block: int | None,
    to_block: int | None,
    on_decode_error: DecodeErrorPolicy,
    backend: str,
) -> SyncReport:
    deps = sync_stream_factory(backend=backend, engine=engine, stream=get_stream(stream_key))
    try:
        return await sync_stream(
            stream=deps.stream,
            addresses=deps.addresses,
            reader=deps.reader,
            decoders=deps.decoders,
            writer=deps.writer,
            cursors=deps.cursors,
            timestamps=deps.timestamps,
            genesis_block=deps.genesis_block,
            first_block=from_block,
            last_block=to_block,
            batch_size=deps.batch_size,
            on_decode_error=on_decode_error,
        )
    finally:
        await deps.reader.close()


async def sync_stream_task(
    *,
    stream: StreamKey | str,
    from_block: int | None = None,
    to_block: int | None = None,
    on_decode_error: DecodeErrorPolicy = "abort",
    backend: str = "sqlalchemy",
) -> SyncReport:
    """
    Task: sync one EigenLayer event stream into its tables.

    from_block defaults to the stream's cursor, to_block to the chain head.
    """
    engine = create_app_async_engine()
    try:
        return await _sync_one(
            engine=engine,
            stream_key=stream,
            from_block=from_block,
            to_block=to_block,
            on_decode_error=on_decode_error,
            backend=backend,
        )
    finally:
        await engine.dispose()


async def sync_pods_task(**kwargs) -> SyncReport:
    return await sync_stream_task(stream=StreamKey.PODS, **kwargs)


async def sync_operator_shares_task(**kwargs) -> SyncReport:
    return await sync_stream_task(stream=StreamKey.OPERATOR_SHARES, **kwargs)


async def sync_deposits_task(**kwargs) -> SyncReport:
    return await sync_stream_task(stream=StreamKey.DEPOSITS, **kwargs)


async def sync_withdrawals_task(**kwargs) -> SyncReport:
    return await sync_stream_task(stream=StreamKey.WITHDRAWALS, **kwargs)


async def sync_all_task(
    *,
    on_decode_error: DecodeErrorPolicy = "abort",
    backend: str = "sqlalchemy",
) -> list[SyncReport]:
    """
    Task: sync every stream concurrently, each from its own cursor to the chain head.

    Streams are independent; one failing does not stop the others. The first
    failure is re-raised once all streams have finished.
    """
    engine = create_app_async_engine()
    try:
        results = await asyncio.gather(
            *(
                _sync_one(
                    engine=engine,
                    stream_key=key,
                    from_block=None,
                    to_block=None,
                    on_decode_error=on_decode_error,
                    backend=backend,
                )
                for key in StreamKey
            ),
            return_exceptions=True,
        )
    finally:
        await engine.dispose()

    reports: list[SyncReport] = []
    failures: list[BaseException] = []
    for key, result in zip(StreamKey, results, strict=True):
        if isinstance(result, BaseException):
            logger.error("Stream %s failed: %s", key.value, result)
            failures.append(result)
        else:
            reports.append(result)

    if failures:
        raise failures[0]
    return reports
