from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from eigen_indexer.app.config import settings


def create_app_async_engine(*, echo: bool = False) -> AsyncEngine:
    """
    Factory for the AsyncEngine used by sync and metrics tasks.

    Each task creates one engine and disposes it when done.
    """
    return create_async_engine(
        settings.database_url,  # postgresql+asyncpg://...
        echo=echo,
        pool_pre_ping=True,
    )
