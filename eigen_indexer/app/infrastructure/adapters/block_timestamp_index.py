from __future__ import annotations

from datetime import datetime
from typing import Mapping

from sqlalchemy import Select, select
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.ext.asyncio import AsyncEngine

from eigen_indexer.app.infrastructure.db.models.blocks import EvmBlockDataDB


def select_block_range_statement(from_block: int, to_block: int) -> Select:
    return (
        select(EvmBlockDataDB.number, EvmBlockDataDB.timestamp)
        .where(EvmBlockDataDB.number.between(from_block, to_block))
        .order_by(EvmBlockDataDB.number)
    )


def insert_blocks_statement() -> Insert:
    return insert(EvmBlockDataDB).on_conflict_do_nothing(index_elements=[EvmBlockDataDB.number])


class SqlAlchemyBlockTimestampIndex:
    """BlockTimestampIndex over `evm_block_data`; existing rows are never rewritten."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get_range(self, from_block: int, to_block: int) -> dict[int, datetime]:
        async with self._engine.connect() as conn:
            result = await conn.execute(select_block_range_statement(from_block, to_block))
            return {row.number: row.timestamp for row in result}

    async def save(self, timestamps: Mapping[int, datetime]) -> None:
        if not timestamps:
            return
        rows = [{"number": n, "timestamp": ts} for n, ts in sorted(timestamps.items())]
        async with self._engine.begin() as conn:
            await conn.execute(insert_blocks_statement(), rows)
