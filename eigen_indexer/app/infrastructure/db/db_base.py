from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class BaseDB(DeclarativeBase):
    """Declarative base shared by every table the indexer reads or writes."""
