"""Async engine and session factory."""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bookloop.config import settings
from bookloop.domain.models import Base

logger = logging.getLogger(__name__)

engine: AsyncEngine = create_async_engine(settings.database_url, echo=settings.database_echo)

# Objects stay usable after commit: the state machine commits mid-operation.
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create any missing tables."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency returning the session factory (overridden in tests)."""
    return async_session_factory
