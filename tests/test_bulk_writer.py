from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from eigen_indexer.app.domain.errors import WriteConflict
from eigen_indexer.app.domain.models import (
    ClearTable,
    DepositRecord,
    DestinationTable,
    InsertRecordSkipDuplicates,
    UpsertRecord,
    WithdrawalCompletedRecord,
)
from eigen_indexer.app.infrastructure.adapters.bulk_writer import SqlAlchemyBulkWriter


class _RecordingConnection:
    def __init__(self, log: list, fail: bool) -> None:
        self._log = log
        self._fail = fail

    async def execute(self, stmt, params=None):
        if self._fail:
            raise IntegrityError(str(stmt), params, Exception("duplicate key"))
        self._log.append((stmt.table.name, len(params) if params is not None else None))


class _FakeEngine:
    """Records (table, row count) per execute and one entry per transaction."""

    def __init__(self, *, fail: bool = False) -> None:
        self.executed: list[tuple[str, int | None]] = []
        self.transactions = 0
        self._fail = fail

    @asynccontextmanager
    async def begin(self):
        self.transactions += 1
        yield _RecordingConnection(self.executed, self._fail)


def _deposit(log_index: int, shares: str = "1") -> DepositRecord:
    return DepositRecord(
        address="0x" + "aa" * 20,
        transaction_hash="0x" + "01" * 32,
        transaction_index=0,
        log_index=log_index,
        block_number=100,
        block_hash="0x" + "02" * 32,
        block_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        staker="s",
        token="t",
        strategy="x",
        shares=shares,
    )


def _completed(log_index: int) -> WithdrawalCompletedRecord:
    return WithdrawalCompletedRecord(
        address="0x" + "aa" * 20,
        transaction_hash="0x" + "03" * 32,
        transaction_index=1,
        log_index=log_index,
        block_number=101,
        block_hash="0x" + "04" * 32,
        block_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        withdrawal_root="0x" + "05" * 32,
    )


async def test_consecutive_ops_for_a_table_are_batched_and_deduplicated():
    engine = _FakeEngine()
    writer = SqlAlchemyBulkWriter(engine)  # type: ignore[arg-type]

    report = await writer.apply(
        [
            ClearTable(DestinationTable.DEPOSITS),
            InsertRecordSkipDuplicates(_deposit(0)),
            InsertRecordSkipDuplicates(_deposit(1)),
            InsertRecordSkipDuplicates(_deposit(1, shares="2")),
            InsertRecordSkipDuplicates(_completed(0)),
        ]
    )

    assert engine.executed == [
        ("event_logs_deposit", None),
        ("event_logs_deposit", 2),
        ("event_logs_withdrawal_completed", 1),
    ]
    assert (report.operations, report.chunks) == (5, 1)


async def test_upsert_and_skip_duplicates_are_not_mixed():
    engine = _FakeEngine()
    writer = SqlAlchemyBulkWriter(engine)  # type: ignore[arg-type]

    await writer.apply([UpsertRecord(_deposit(0)), InsertRecordSkipDuplicates(_deposit(1))])

    assert engine.executed == [("event_logs_deposit", 1), ("event_logs_deposit", 1)]


async def test_each_chunk_is_its_own_transaction():
    engine = _FakeEngine()
    writer = SqlAlchemyBulkWriter(engine, chunk_size=2)  # type: ignore[arg-type]

    report = await writer.apply([UpsertRecord(_deposit(i)) for i in range(5)])

    assert engine.transactions == 3
    assert report.chunks == 3


async def test_integrity_error_becomes_write_conflict():
    writer = SqlAlchemyBulkWriter(_FakeEngine(fail=True))  # type: ignore[arg-type]

    with pytest.raises(WriteConflict):
        await writer.apply([UpsertRecord(_deposit(0))], label="deposits")


async def test_empty_ops_open_no_transaction():
    engine = _FakeEngine()
    report = await SqlAlchemyBulkWriter(engine).apply([])  # type: ignore[arg-type]

    assert engine.transactions == 0
    assert report.chunks == 0


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError):
        SqlAlchemyBulkWriter(_FakeEngine(), chunk_size=0)  # type: ignore[arg-type]
