"""
Database engine and session management with SQLAlchemy async
"""

from functools import lru_cache
from typing import AsyncIterator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import settings
import logging

logger = logging.getLogger(__name__)


def create_engine(url: Optional[str] = None, pool_size: Optional[int] = None) -> AsyncEngine:
    """
    Create an async engine.

    Backfill sizes the pool to ``threads + 2`` so that every worker plus the
    tracker writer can hold a connection at the same time. SQLite URLs keep
    SQLAlchemy's default pool because they do not accept sizing arguments.
    """
    url = url or settings.DATABASE_URL
    kwargs = {"echo": False, "future": True}

    if make_url(url).get_backend_name() != "sqlite":
        kwargs["pool_size"] = pool_size or settings.DB_POOL_SIZE
        kwargs["max_overflow"] = 2
        kwargs["pool_pre_ping"] = True

    logger.debug(f"Creating engine (pool_size={kwargs.get('pool_size', 'default')})")
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to ``engine``"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@lru_cache(maxsize=1)
def get_default_engine() -> AsyncEngine:
    return create_engine()


async def get_session() -> AsyncIterator[AsyncSession]:
    """Get database session"""
    async with create_session_factory(get_default_engine())() as session:
        yield session
