from __future__ import annotations

import logging

from sqlalchemy import Select, select
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.ext.asyncio import AsyncEngine

from eigen_indexer.app.infrastructure.db.models.settings import SettingsDB

logger = logging.getLogger(__name__)


def select_cursor_statement(stream_key: str) -> Select:
    return select(SettingsDB.value).where(SettingsDB.key == stream_key)


def upsert_cursor_statement(stream_key: str, block_number: int) -> Insert:
    stmt = insert(SettingsDB).values(key=stream_key, value=block_number)
    return stmt.on_conflict_do_update(
        index_elements=[SettingsDB.key],
        set_={"value": stmt.excluded.value},
    )


class SqlAlchemySyncCursorStore:
    """
    SyncCursorStore over the `settings` key/value table.

    A stream that never ran resolves to the network's genesis block.
    """

    def __init__(self, engine: AsyncEngine, *, genesis_block: int) -> None:
        if genesis_block < 0:
            raise ValueError("genesis_block must be non-negative")
        self._engine = engine
        self._genesis_block = genesis_block

    async def get(self, stream_key: str) -> int:
        async with self._engine.connect() as conn:
            result = await conn.execute(select_cursor_statement(stream_key))
            value = result.scalar_one_or_none()

        if value is None:
            logger.info("No cursor for %s, starting at genesis block %s", stream_key, self._genesis_block)
            return self._genesis_block
        return int(value)

    async def set(self, stream_key: str, block_number: int) -> None:
        if block_number < 0:
            raise ValueError("Block numbers must be non-negative")
        async with self._engine.begin() as conn:
            await conn.execute(upsert_cursor_statement(stream_key, block_number))
        logger.debug("Cursor %s -> %s", stream_key, block_number)
