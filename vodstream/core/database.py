"""Database engine and session management.

Provides the async SQLAlchemy engine, the declarative ``Base`` shared by all
ORM models, the FastAPI ``get_db`` dependency and startup/shutdown hooks.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from vodstream.core.config import settings


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for a single request.

    The session is always closed afterwards; services commit explicitly.
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Create all tables that do not exist yet.

    Called once at application startup. Deployments that manage the schema
    with Alembic can rely on this being a no-op for existing tables.
    """
    # Register models on Base.metadata before create_all.
    import vodstream.modules.video.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine's connection pool at shutdown."""
    await engine.dispose()
