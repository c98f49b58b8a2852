from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, PrimaryKeyConstraint
from sqlalchemy.orm import Mapped, mapped_column

from eigen_indexer.app.infrastructure.db.db_base import BaseDB


class EvmBlockDataDB(BaseDB):
    """Block number -> block timestamp, filled lazily by the sync streams."""

    __tablename__ = "evm_block_data"
    __table_args__ = (
        PrimaryKeyConstraint("number"),
        Index("ix_evm_block_data_timestamp", "timestamp"),
    )

    number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
