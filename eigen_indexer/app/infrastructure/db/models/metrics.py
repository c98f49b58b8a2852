from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from eigen_indexer.app.infrastructure.db.db_base import BaseDB

# Hourly snapshot tables. Rows exist only for hours with activity and are
# written by the metrics seeder; the indexer only reads them.


class MetricEigenPodsHourlyDB(BaseDB):
    __tablename__ = "metric_eigen_pods_hourly"
    __table_args__ = (PrimaryKeyConstraint("timestamp"),)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tvl_eth: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    change_tvl_eth: Mapped[Decimal] = mapped_column(Numeric, nullable=False)


class MetricStrategyHourlyDB(BaseDB):
    """Per-strategy TVL in strategy units (not ETH)."""

    __tablename__ = "metric_strategy_hourly"
    __table_args__ = (PrimaryKeyConstraint("strategy_address", "timestamp"),)

    strategy_address: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tvl: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    change_tvl: Mapped[Decimal] = mapped_column(Numeric, nullable=False)


class MetricDepositHourlyDB(BaseDB):
    __tablename__ = "metric_deposit_hourly"
    __table_args__ = (PrimaryKeyConstraint("timestamp"),)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tvl_eth: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    change_tvl_eth: Mapped[Decimal] = mapped_column(Numeric, nullable=False)


class MetricWithdrawalHourlyDB(BaseDB):
    __tablename__ = "metric_withdrawal_hourly"
    __table_args__ = (PrimaryKeyConstraint("timestamp"),)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tvl_eth: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    change_tvl_eth: Mapped[Decimal] = mapped_column(Numeric, nullable=False)


class MetricAvsHourlyDB(BaseDB):
    __tablename__ = "metric_avs_hourly"
    __table_args__ = (PrimaryKeyConstraint("avs_address", "timestamp"),)

    avs_address: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tvl_eth: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    total_stakers: Mapped[int] = mapped_column(Integer, nullable=False)
    total_operators: Mapped[int] = mapped_column(Integer, nullable=False)
    change_tvl_eth: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    change_stakers: Mapped[int] = mapped_column(Integer, nullable=False)
    change_operators: Mapped[int] = mapped_column(Integer, nullable=False)


class MetricOperatorHourlyDB(BaseDB):
    __tablename__ = "metric_operator_hourly"
    __table_args__ = (PrimaryKeyConstraint("operator_address", "timestamp"),)

    operator_address: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tvl_eth: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    total_stakers: Mapped[int] = mapped_column(Integer, nullable=False)
    change_tvl_eth: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    change_stakers: Mapped[int] = mapped_column(Integer, nullable=False)
