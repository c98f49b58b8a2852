from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, Union


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def validate(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError("from_block must be <= to_block")


@dataclass(frozen=True)
class LogEntry:
    """
    One raw EVM log as returned by eth_getLogs.

    Hashes and the emitting address are 0x-prefixed lowercase hex; topics and
    data stay as bytes so the decoder can ABI-decode them directly.
    """

    address: str
    topics: tuple[bytes, ...]
    data: bytes
    transaction_hash: str
    transaction_index: int
    block_number: int
    block_hash: str
    log_index: int

    @property
    def topic0(self) -> bytes | None:
        return self.topics[0] if self.topics else None


@dataclass(frozen=True)
class SyncCursor:
    stream_key: str
    last_block: int


# -----------------------------------------------------------------------------
# Domain event records
# -----------------------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class EventRecordBase:
    """Fields every decoded log carries, whatever the event."""

    address: str
    transaction_hash: str
    transaction_index: int
    log_index: int
    block_number: int
    block_hash: str
    block_time: datetime

    @property
    def natural_key(self) -> tuple[str, int]:
        return (self.transaction_hash, self.log_index)


@dataclass(frozen=True, kw_only=True)
class PodDeployedRecord(EventRecordBase):
    pod_address: str
    pod_owner: str

    @property
    def natural_key(self) -> tuple[str, int]:
        # pods are entities: one row per pod address
        return (self.pod_address, 0)


@dataclass(frozen=True, kw_only=True)
class OperatorSharesIncreasedRecord(EventRecordBase):
    operator: str
    staker: str
    strategy: str
    shares: str


@dataclass(frozen=True, kw_only=True)
class OperatorSharesDecreasedRecord(EventRecordBase):
    operator: str
    staker: str
    strategy: str
    shares: str


@dataclass(frozen=True, kw_only=True)
class DepositRecord(EventRecordBase):
    staker: str
    token: str
    strategy: str
    shares: str


@dataclass(frozen=True, kw_only=True)
class WithdrawalQueuedRecord(EventRecordBase):
    withdrawal_root: str
    staker: str
    delegated_to: str
    withdrawer: str
    nonce: str
    start_block: int
    strategies: tuple[str, ...]
    shares: tuple[str, ...]


@dataclass(frozen=True, kw_only=True)
class WithdrawalCompletedRecord(EventRecordBase):
    withdrawal_root: str


DomainEventRecord = Union[
    PodDeployedRecord,
    OperatorSharesIncreasedRecord,
    OperatorSharesDecreasedRecord,
    DepositRecord,
    WithdrawalQueuedRecord,
    WithdrawalCompletedRecord,
]


# -----------------------------------------------------------------------------
# Write operations produced by one batch
# -----------------------------------------------------------------------------


class DestinationTable(str, Enum):
    """Tables the bulk writer is allowed to touch."""

    PODS = "pods"
    VALIDATOR_RESTAKES = "validator_restakes"
    OPERATOR_SHARES_INCREASED = "event_logs_operator_shares_increased"
    OPERATOR_SHARES_DECREASED = "event_logs_operator_shares_decreased"
    DEPOSITS = "event_logs_deposit"
    WITHDRAWALS_QUEUED = "event_logs_withdrawal_queued"
    WITHDRAWALS_COMPLETED = "event_logs_withdrawal_completed"


@dataclass(frozen=True)
class ClearTable:
    table: DestinationTable


@dataclass(frozen=True)
class UpsertRecord:
    record: DomainEventRecord


@dataclass(frozen=True)
class InsertRecordSkipDuplicates:
    record: DomainEventRecord


WriteOp = Union[ClearTable, UpsertRecord, InsertRecordSkipDuplicates]


@dataclass(frozen=True)
class WriteReport:
    operations: int
    chunks: int


# -----------------------------------------------------------------------------
# Sync outcomes
# -----------------------------------------------------------------------------

BatchStatus = Literal["done", "failed"]


@dataclass(frozen=True)
class DecodeFailure:
    transaction_hash: str
    log_index: int
    block_number: int
    reason: str


@dataclass(frozen=True)
class BatchOutcome:
    from_block: int
    to_block: int
    status: BatchStatus
    logs: int = 0
    records: int = 0
    decode_failures: tuple[DecodeFailure, ...] = ()
    error: str | None = None


@dataclass
class SyncReport:
    stream_key: str
    # None when the run failed before its bounds were resolved
    first_block: int | None
    last_block: int | None
    bootstrap: bool = False
    batches: list[BatchOutcome] = field(default_factory=list)

    @property
    def records_written(self) -> int:
        return sum(b.records for b in self.batches if b.status == "done")

    @property
    def decode_failures(self) -> list[DecodeFailure]:
        return [f for b in self.batches for f in b.decode_failures]

    @property
    def last_committed_block(self) -> int | None:
        done = [b.to_block for b in self.batches if b.status == "done"]
        return done[-1] if done else None
