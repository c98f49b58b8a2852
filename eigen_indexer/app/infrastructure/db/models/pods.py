from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from eigen_indexer.app.infrastructure.db.db_base import BaseDB


class PodDB(BaseDB):
    """
    EigenPod registry.

    One row = one pod address from EigenPodManager.PodDeployed. created_* keep
    the first sighting; updated_* follow the latest re-ingestion.
    """

    __tablename__ = "pods"
    __table_args__ = (
        PrimaryKeyConstraint("address"),
        Index("ix_pods_owner", "owner"),
    )

    address: Mapped[str] = mapped_column(Text, nullable=False)
    owner: Mapped[str] = mapped_column(Text, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    created_at_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ValidatorRestakeDB(BaseDB):
    """
    Validators restaked through a pod.

    Depends on `pods`; the pods stream clears it together with `pods` when it
    bootstraps from genesis.
    """

    __tablename__ = "validator_restakes"
    __table_args__ = (
        PrimaryKeyConstraint("pod_address", "validator_index"),
        Index("ix_validator_restakes_block", "block_number"),
    )

    pod_address: Mapped[str] = mapped_column(Text, nullable=False)
    validator_index: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
