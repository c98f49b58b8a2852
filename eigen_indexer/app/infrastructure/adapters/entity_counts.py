from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, Select, Table, func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from eigen_indexer.app.domain.metrics import CountedEntity
from eigen_indexer.app.infrastructure.db.models.entities import AvsDB, OperatorDB, StakerDB
from eigen_indexer.app.infrastructure.db.models.event_logs import (
    DepositDB,
    WithdrawalCompletedDB,
    WithdrawalQueuedDB,
)


@dataclass(frozen=True)
class CountSource:
    """Table and creation-time column an entity is counted from, plus fixed filters."""

    table: Table
    created_column: str
    filters: tuple[ColumnElement[Any], ...] = field(default_factory=tuple)

    @property
    def created(self) -> Any:
        return self.table.c[self.created_column]


COUNT_SOURCES: dict[str, CountSource] = {
    "avs": CountSource(AvsDB.__table__, "created_at"),  # type: ignore[arg-type]
    "operator": CountSource(OperatorDB.__table__, "created_at"),  # type: ignore[arg-type]
    "staker": CountSource(
        StakerDB.__table__,  # type: ignore[arg-type]
        "created_at",
        (StakerDB.__table__.c.operator_address.is_not(None),),
    ),
    "withdrawal_queued": CountSource(WithdrawalQueuedDB.__table__, "block_time"),  # type: ignore[arg-type]
    "deposit": CountSource(DepositDB.__table__, "block_time"),  # type: ignore[arg-type]
}


def _source(entity: str) -> CountSource:
    try:
        return COUNT_SOURCES[entity]
    except KeyError:
        raise ValueError(f"Unsupported entity: {entity!r}. Expected one of {sorted(COUNT_SOURCES)}")


def count_statement(
    entity: CountedEntity,
    *,
    created_before: datetime | None = None,
    created_since: datetime | None = None,
) -> Select:
    src = _source(entity)
    stmt = select(func.count()).select_from(src.table).where(*src.filters)
    if created_before is not None:
        stmt = stmt.where(src.created < created_before)
    if created_since is not None:
        stmt = stmt.where(src.created >= created_since)
    return stmt


def created_at_statement(entity: CountedEntity, *, start_at: datetime, end_at: datetime) -> Select:
    src = _source(entity)
    return (
        select(src.created)
        .where(*src.filters)
        .where(src.created >= start_at, src.created <= end_at)
        .order_by(src.created.asc())
    )


class SqlAlchemyEntityCountReader:
    """EntityCountReader over the entity tables and the ingested withdrawal/deposit logs."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def count(
        self,
        *,
        entity: CountedEntity,
        created_before: datetime | None = None,
        created_since: datetime | None = None,
    ) -> int:
        stmt = count_statement(entity, created_before=created_before, created_since=created_since)
        async with self._engine.connect() as conn:
            return int((await conn.execute(stmt)).scalar_one())

    async def list_created_at(
        self,
        *,
        entity: CountedEntity,
        start_at: datetime,
        end_at: datetime,
    ) -> list[datetime]:
        stmt = created_at_statement(entity, start_at=start_at, end_at=end_at)
        async with self._engine.connect() as conn:
            return list((await conn.execute(stmt)).scalars().all())

    async def count_completed_withdrawals(self) -> int:
        stmt = select(func.count()).select_from(WithdrawalCompletedDB.__table__)
        async with self._engine.connect() as conn:
            return int((await conn.execute(stmt)).scalar_one())
