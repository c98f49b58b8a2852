from __future__ import annotations

from typing import Any

from sqlalchemy import PrimaryKeyConstraint, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from eigen_indexer.app.infrastructure.db.db_base import BaseDB


class SettingsDB(BaseDB):
    """
    Key/value settings surface.

    Sync cursors live here as `lastSyncedBlock_<stream>` -> block number.
    """

    __tablename__ = "settings"
    __table_args__ = (PrimaryKeyConstraint("key"),)

    key: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[Any] = mapped_column(JSONB, nullable=True)
