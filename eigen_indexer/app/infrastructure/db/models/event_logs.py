from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from eigen_indexer.app.infrastructure.db.db_base import BaseDB

# uint256 fits in 78 decimal digits
UINT256 = Numeric(78, 0)


def _event_log_table_args(table: str) -> tuple:
    return (
        # Natural key: one row per log
        PrimaryKeyConstraint("transaction_hash", "log_index"),
        Index(f"ix_{table}_block_number", "block_number"),
        Index(f"ix_{table}_block_time", "block_time"),
    )


class EventLogMixin:
    """
    Columns every decoded log row carries.

    Addresses and hashes are 0x-prefixed lowercase hex text.
    """

    address: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_index: Mapped[int] = mapped_column(Integer, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_hash: Mapped[str] = mapped_column(Text, nullable=False)
    block_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class OperatorSharesIncreasedDB(EventLogMixin, BaseDB):
    """DelegationManager.OperatorSharesIncreased logs."""

    __tablename__ = "event_logs_operator_shares_increased"
    __table_args__ = (
        *_event_log_table_args("event_logs_operator_shares_increased"),
        Index("ix_event_logs_operator_shares_increased_operator", "operator"),
    )

    operator: Mapped[str] = mapped_column(Text, nullable=False)
    staker: Mapped[str] = mapped_column(Text, nullable=False)
    strategy: Mapped[str] = mapped_column(Text, nullable=False)
    shares: Mapped[Decimal] = mapped_column(UINT256, nullable=False)


class OperatorSharesDecreasedDB(EventLogMixin, BaseDB):
    """DelegationManager.OperatorSharesDecreased logs."""

    __tablename__ = "event_logs_operator_shares_decreased"
    __table_args__ = (
        *_event_log_table_args("event_logs_operator_shares_decreased"),
        Index("ix_event_logs_operator_shares_decreased_operator", "operator"),
    )

    operator: Mapped[str] = mapped_column(Text, nullable=False)
    staker: Mapped[str] = mapped_column(Text, nullable=False)
    strategy: Mapped[str] = mapped_column(Text, nullable=False)
    shares: Mapped[Decimal] = mapped_column(UINT256, nullable=False)


class DepositDB(EventLogMixin, BaseDB):
    """StrategyManager.Deposit logs."""

    __tablename__ = "event_logs_deposit"
    __table_args__ = (
        *_event_log_table_args("event_logs_deposit"),
        Index("ix_event_logs_deposit_staker", "staker"),
    )

    staker: Mapped[str] = mapped_column(Text, nullable=False)
    token: Mapped[str] = mapped_column(Text, nullable=False)
    strategy: Mapped[str] = mapped_column(Text, nullable=False)
    shares: Mapped[Decimal] = mapped_column(UINT256, nullable=False)


class WithdrawalQueuedDB(EventLogMixin, BaseDB):
    """
    DelegationManager.WithdrawalQueued logs.

    `strategies[i]` pairs with `shares[i]`.
    """

    __tablename__ = "event_logs_withdrawal_queued"
    __table_args__ = (
        *_event_log_table_args("event_logs_withdrawal_queued"),
        Index("ix_event_logs_withdrawal_queued_root", "withdrawal_root", unique=True),
    )

    withdrawal_root: Mapped[str] = mapped_column(Text, nullable=False)
    staker: Mapped[str] = mapped_column(Text, nullable=False)
    delegated_to: Mapped[str] = mapped_column(Text, nullable=False)
    withdrawer: Mapped[str] = mapped_column(Text, nullable=False)
    nonce: Mapped[Decimal] = mapped_column(UINT256, nullable=False)
    start_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    strategies: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False)
    shares: Mapped[list[Decimal]] = mapped_column(ARRAY(UINT256), nullable=False)


class WithdrawalCompletedDB(EventLogMixin, BaseDB):
    """DelegationManager.WithdrawalCompleted logs."""

    __tablename__ = "event_logs_withdrawal_completed"
    __table_args__ = (
        *_event_log_table_args("event_logs_withdrawal_completed"),
        Index("ix_event_logs_withdrawal_completed_root", "withdrawal_root"),
    )

    withdrawal_root: Mapped[str] = mapped_column(Text, nullable=False)
