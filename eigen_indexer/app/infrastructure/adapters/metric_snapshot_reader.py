from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence

from sqlalchemy import Column, Select, Table, select
from sqlalchemy.dialects.postgresql import distinct_on
from sqlalchemy.ext.asyncio import AsyncEngine

from eigen_indexer.app.domain import amounts
from eigen_indexer.app.domain.metrics import HourlyMetricSnapshot, MetricKind
from eigen_indexer.app.infrastructure.db.db_base import BaseDB
from eigen_indexer.app.infrastructure.db.models.metrics import (
    MetricAvsHourlyDB,
    MetricDepositHourlyDB,
    MetricEigenPodsHourlyDB,
    MetricOperatorHourlyDB,
    MetricStrategyHourlyDB,
    MetricWithdrawalHourlyDB,
)


@dataclass(frozen=True)
class MetricTable:
    model: type[BaseDB]
    entity_column: str | None = None

    @property
    def table(self) -> Table:
        return self.model.__table__  # type: ignore[return-value]

    @property
    def timestamp(self) -> Column[Any]:
        return self.table.c.timestamp

    @property
    def entity(self) -> Column[Any] | None:
        return self.table.c[self.entity_column] if self.entity_column else None


METRIC_TABLES: dict[MetricKind, MetricTable] = {
    MetricKind.EIGEN_PODS: MetricTable(MetricEigenPodsHourlyDB),
    MetricKind.STRATEGY: MetricTable(MetricStrategyHourlyDB, "strategy_address"),
    MetricKind.DEPOSIT: MetricTable(MetricDepositHourlyDB),
    MetricKind.WITHDRAWAL: MetricTable(MetricWithdrawalHourlyDB),
    MetricKind.AVS: MetricTable(MetricAvsHourlyDB, "avs_address"),
    MetricKind.OPERATOR: MetricTable(MetricOperatorHourlyDB, "operator_address"),
}


def _scoped(stmt: Select, mt: MetricTable, entity_key: str | None) -> Select:
    if entity_key is not None and mt.entity is not None:
        stmt = stmt.where(mt.entity == entity_key.lower())
    return stmt


def list_snapshots_statement(
    kind: MetricKind,
    *,
    start_at: datetime,
    end_at: datetime,
    entity_key: str | None = None,
    exclude_entities: Sequence[str] = (),
) -> Select:
    mt = METRIC_TABLES[kind]
    stmt = select(mt.table).where(mt.timestamp >= start_at, mt.timestamp <= end_at)
    stmt = _scoped(stmt, mt, entity_key)
    if exclude_entities and mt.entity is not None:
        stmt = stmt.where(mt.entity.not_in([e.lower() for e in exclude_entities]))
    return stmt.order_by(mt.timestamp.asc())


def latest_statement(
    kind: MetricKind,
    *,
    at: datetime,
    inclusive: bool,
    entity_key: str | None = None,
) -> Select:
    mt = METRIC_TABLES[kind]
    bound = mt.timestamp <= at if inclusive else mt.timestamp < at
    stmt = _scoped(select(mt.table).where(bound), mt, entity_key)
    return stmt.order_by(mt.timestamp.desc()).limit(1)


def latest_per_entity_statement(kind: MetricKind, *, at: datetime, inclusive: bool) -> Select:
    mt = METRIC_TABLES[kind]
    if mt.entity is None:
        raise ValueError(f"Metric {kind.value!r} is not entity-scoped")
    bound = mt.timestamp <= at if inclusive else mt.timestamp < at
    return (
        select(mt.table)
        .where(bound)
        .ext(distinct_on(mt.entity))
        .order_by(mt.entity, mt.timestamp.desc())
    )


def row_to_snapshot(kind: MetricKind, row: Mapping[str, Any]) -> HourlyMetricSnapshot:
    mt = METRIC_TABLES[kind]
    entity = row[mt.entity_column] if mt.entity_column else None
    return HourlyMetricSnapshot(
        entity_key=entity.lower() if entity else None,
        timestamp=row["timestamp"],
        values={name: amounts.to_amount(row[name]) for name in kind.fields},
        changes={delta: amounts.to_amount(row[delta]) for delta in kind.fields.values()},
    )


class SqlAlchemyMetricSnapshotReader:
    """
    Read-only MetricSnapshotReader over the hourly metric tables.

    Snapshots are written elsewhere; this adapter never mutates them.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def _fetch(self, kind: MetricKind, stmt: Select) -> list[HourlyMetricSnapshot]:
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            return [row_to_snapshot(kind, row) for row in result.mappings().all()]

    async def list_snapshots(
        self,
        *,
        kind: MetricKind,
        start_at: datetime,
        end_at: datetime,
        entity_key: str | None = None,
        exclude_entities: Sequence[str] = (),
    ) -> list[HourlyMetricSnapshot]:
        stmt = list_snapshots_statement(
            kind,
            start_at=start_at,
            end_at=end_at,
            entity_key=entity_key,
            exclude_entities=exclude_entities,
        )
        return await self._fetch(kind, stmt)

    async def latest_before(
        self,
        *,
        kind: MetricKind,
        before: datetime,
        entity_key: str | None = None,
    ) -> HourlyMetricSnapshot | None:
        rows = await self._fetch(kind, latest_statement(kind, at=before, inclusive=False, entity_key=entity_key))
        return rows[0] if rows else None

    async def latest_at_or_before(
        self,
        *,
        kind: MetricKind,
        at: datetime,
        entity_key: str | None = None,
    ) -> HourlyMetricSnapshot | None:
        rows = await self._fetch(kind, latest_statement(kind, at=at, inclusive=True, entity_key=entity_key))
        return rows[0] if rows else None

    async def latest_per_entity_at_or_before(
        self,
        *,
        kind: MetricKind,
        at: datetime,
        inclusive: bool = True,
    ) -> dict[str, HourlyMetricSnapshot]:
        rows = await self._fetch(kind, latest_per_entity_statement(kind, at=at, inclusive=inclusive))
        return {row.entity_key: row for row in rows if row.entity_key is not None}
