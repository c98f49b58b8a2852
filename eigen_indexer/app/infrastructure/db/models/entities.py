from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from eigen_indexer.app.infrastructure.db.db_base import BaseDB


class AvsDB(BaseDB):
    __tablename__ = "avs"
    __table_args__ = (
        PrimaryKeyConstraint("address"),
        Index("ix_avs_created_at", "created_at"),
    )

    address: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class OperatorDB(BaseDB):
    __tablename__ = "operators"
    __table_args__ = (
        PrimaryKeyConstraint("address"),
        Index("ix_operators_created_at", "created_at"),
    )

    address: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class StakerDB(BaseDB):
    """Only stakers delegated to an operator count toward staker totals."""

    __tablename__ = "stakers"
    __table_args__ = (
        PrimaryKeyConstraint("address"),
        Index("ix_stakers_created_at", "created_at"),
    )

    address: Mapped[str] = mapped_column(Text, nullable=False)
    operator_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
