from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Final, Iterable, Sequence

from sqlalchemy import Delete, delete
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from eigen_indexer.app.domain.errors import WriteConflict
from eigen_indexer.app.domain.models import (
    ClearTable,
    DepositRecord,
    DestinationTable,
    DomainEventRecord,
    EventRecordBase,
    InsertRecordSkipDuplicates,
    OperatorSharesDecreasedRecord,
    OperatorSharesIncreasedRecord,
    PodDeployedRecord,
    UpsertRecord,
    WithdrawalCompletedRecord,
    WithdrawalQueuedRecord,
    WriteOp,
    WriteReport,
)
from eigen_indexer.app.infrastructure.db.db_base import BaseDB
from eigen_indexer.app.infrastructure.db.models.event_logs import (
    DepositDB,
    OperatorSharesDecreasedDB,
    OperatorSharesIncreasedDB,
    WithdrawalCompletedDB,
    WithdrawalQueuedDB,
)
from eigen_indexer.app.infrastructure.db.models.pods import PodDB, ValidatorRestakeDB

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE: Final[int] = 1000


# -----------------------------------------------------------------------------
# Record -> row mapping
# -----------------------------------------------------------------------------


def _log_columns(record: EventRecordBase) -> dict[str, Any]:
    return {
        "address": record.address,
        "transaction_hash": record.transaction_hash,
        "transaction_index": record.transaction_index,
        "log_index": record.log_index,
        "block_number": record.block_number,
        "block_hash": record.block_hash,
        "block_time": record.block_time,
    }


def _pod_row(record: PodDeployedRecord) -> dict[str, Any]:
    return {
        "address": record.pod_address,
        "owner": record.pod_owner,
        "block_number": record.block_number,
        "created_at_block": record.block_number,
        "updated_at_block": record.block_number,
        "created_at": record.block_time,
        "updated_at": record.block_time,
    }


def _operator_shares_row(record: OperatorSharesIncreasedRecord | OperatorSharesDecreasedRecord) -> dict[str, Any]:
    return {
        **_log_columns(record),
        "operator": record.operator,
        "staker": record.staker,
        "strategy": record.strategy,
        "shares": Decimal(record.shares),
    }


def _deposit_row(record: DepositRecord) -> dict[str, Any]:
    return {
        **_log_columns(record),
        "staker": record.staker,
        "token": record.token,
        "strategy": record.strategy,
        "shares": Decimal(record.shares),
    }


def _withdrawal_queued_row(record: WithdrawalQueuedRecord) -> dict[str, Any]:
    return {
        **_log_columns(record),
        "withdrawal_root": record.withdrawal_root,
        "staker": record.staker,
        "delegated_to": record.delegated_to,
        "withdrawer": record.withdrawer,
        "nonce": Decimal(record.nonce),
        "start_block": record.start_block,
        "strategies": list(record.strategies),
        "shares": [Decimal(s) for s in record.shares],
    }


def _withdrawal_completed_row(record: WithdrawalCompletedRecord) -> dict[str, Any]:
    return {**_log_columns(record), "withdrawal_root": record.withdrawal_root}


@dataclass(frozen=True)
class TableBinding:
    """
    Where one record type is written.

    `conflict_columns` is the natural key; `upsert_columns` are the columns an
    upsert overwrites on conflict (everything else keeps its first value).
    """

    table: DestinationTable
    model: type[BaseDB]
    conflict_columns: tuple[str, ...]
    upsert_columns: tuple[str, ...]
    to_row: Callable[[Any], dict[str, Any]]


_LOG_KEY = ("transaction_hash", "log_index")
_LOG_REFRESH = ("address", "transaction_index", "block_number", "block_hash", "block_time")

RECORD_TABLES: dict[type, TableBinding] = {
    PodDeployedRecord: TableBinding(
        table=DestinationTable.PODS,
        model=PodDB,
        conflict_columns=("address",),
        upsert_columns=("owner", "block_number", "updated_at_block", "updated_at"),
        to_row=_pod_row,
    ),
    OperatorSharesIncreasedRecord: TableBinding(
        table=DestinationTable.OPERATOR_SHARES_INCREASED,
        model=OperatorSharesIncreasedDB,
        conflict_columns=_LOG_KEY,
        upsert_columns=_LOG_REFRESH + ("operator", "staker", "strategy", "shares"),
        to_row=_operator_shares_row,
    ),
    OperatorSharesDecreasedRecord: TableBinding(
        table=DestinationTable.OPERATOR_SHARES_DECREASED,
        model=OperatorSharesDecreasedDB,
        conflict_columns=_LOG_KEY,
        upsert_columns=_LOG_REFRESH + ("operator", "staker", "strategy", "shares"),
        to_row=_operator_shares_row,
    ),
    DepositRecord: TableBinding(
        table=DestinationTable.DEPOSITS,
        model=DepositDB,
        conflict_columns=_LOG_KEY,
        upsert_columns=_LOG_REFRESH + ("staker", "token", "strategy", "shares"),
        to_row=_deposit_row,
    ),
    WithdrawalQueuedRecord: TableBinding(
        table=DestinationTable.WITHDRAWALS_QUEUED,
        model=WithdrawalQueuedDB,
        conflict_columns=_LOG_KEY,
        upsert_columns=_LOG_REFRESH
        + ("withdrawal_root", "staker", "delegated_to", "withdrawer", "nonce", "start_block", "strategies", "shares"),
        to_row=_withdrawal_queued_row,
    ),
    WithdrawalCompletedRecord: TableBinding(
        table=DestinationTable.WITHDRAWALS_COMPLETED,
        model=WithdrawalCompletedDB,
        conflict_columns=_LOG_KEY,
        upsert_columns=_LOG_REFRESH + ("withdrawal_root",),
        to_row=_withdrawal_completed_row,
    ),
}

TABLE_MODELS: dict[DestinationTable, type[BaseDB]] = {
    DestinationTable.PODS: PodDB,
    DestinationTable.VALIDATOR_RESTAKES: ValidatorRestakeDB,
    DestinationTable.OPERATOR_SHARES_INCREASED: OperatorSharesIncreasedDB,
    DestinationTable.OPERATOR_SHARES_DECREASED: OperatorSharesDecreasedDB,
    DestinationTable.DEPOSITS: DepositDB,
    DestinationTable.WITHDRAWALS_QUEUED: WithdrawalQueuedDB,
    DestinationTable.WITHDRAWALS_COMPLETED: WithdrawalCompletedDB,
}


def binding_for(record: DomainEventRecord) -> TableBinding:
    try:
        return RECORD_TABLES[type(record)]
    except KeyError:
        raise ValueError(f"No destination table for record type {type(record).__name__}")


# -----------------------------------------------------------------------------
# Statements
# -----------------------------------------------------------------------------


def clear_table_statement(table: DestinationTable) -> Delete:
    return delete(TABLE_MODELS[table])


def insert_skip_duplicates_statement(binding: TableBinding) -> Insert:
    return insert(binding.model).on_conflict_do_nothing(index_elements=list(binding.conflict_columns))


def upsert_statement(binding: TableBinding) -> Insert:
    stmt = insert(binding.model)
    return stmt.on_conflict_do_update(
        index_elements=list(binding.conflict_columns),
        set_={c: stmt.excluded[c] for c in binding.upsert_columns},
    )


def _chunks(seq: Sequence[WriteOp], size: int) -> Iterable[Sequence[WriteOp]]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


class SqlAlchemyBulkWriter:
    """
    BulkWriter over PostgreSQL.

    Ops are split into chunks of at most `chunk_size`; every chunk runs in its
    own transaction. Inside a chunk, consecutive record ops for the same table
    and mode are sent as one executemany, deduplicated on the natural key
    (last occurrence wins). Order between tables is preserved, so a ClearTable
    always runs before the inserts planned after it.
    """

    def __init__(self, engine: AsyncEngine, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._engine = engine
        self._chunk_size = chunk_size

    async def apply(self, ops: Sequence[WriteOp], *, label: str = "") -> WriteReport:
        started = time.perf_counter()
        chunks = 0

        for chunk in _chunks(ops, self._chunk_size):
            try:
                async with self._engine.begin() as conn:
                    await self._apply_chunk(conn, chunk)
            except IntegrityError as exc:
                raise WriteConflict(f"Write chunk {chunks + 1} failed {label}: {exc.orig}") from exc
            chunks += 1

        logger.info(
            "[DB Write (%s)] %s: %s chunks in %.3fs",
            len(ops),
            label,
            chunks,
            time.perf_counter() - started,
        )
        return WriteReport(operations=len(ops), chunks=chunks)

    async def _apply_chunk(self, conn: AsyncConnection, chunk: Sequence[WriteOp]) -> None:
        group_key: tuple[type, TableBinding] | None = None
        rows: dict[tuple[Any, ...], dict[str, Any]] = {}

        async def _flush() -> None:
            if group_key is None or not rows:
                return
            mode, binding = group_key
            stmt = upsert_statement(binding) if mode is UpsertRecord else insert_skip_duplicates_statement(binding)
            await conn.execute(stmt, list(rows.values()))
            logger.debug("Wrote %s rows to %s (%s)", len(rows), binding.table.value, mode.__name__)

        for op in chunk:
            if isinstance(op, ClearTable):
                await _flush()
                group_key, rows = None, {}
                await conn.execute(clear_table_statement(op.table))
                logger.info("Cleared table %s", op.table.value)
                continue

            if not isinstance(op, (UpsertRecord, InsertRecordSkipDuplicates)):
                raise TypeError(f"Unsupported write op: {op!r}")

            binding = binding_for(op.record)
            key = (type(op), binding)
            if key != group_key:
                await _flush()
                group_key, rows = key, {}

            row = binding.to_row(op.record)
            rows[tuple(row[c] for c in binding.conflict_columns)] = row

        await _flush()
