"""
Database Connection

Async SQLAlchemy connection management.
"""

from typing import Optional
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine
)
from sqlalchemy.pool import NullPool

from config.settings import settings


# Lazy initialization - don't create engine at module load
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def create_engine_for(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for an explicit URL."""
    return create_async_engine(
        database_url,
        echo=echo,
        poolclass=NullPool,
    )


def get_engine() -> AsyncEngine:
    """Get or create the async engine (lazy initialization)."""
    global _engine

    if _engine is None:
        _engine = create_engine_for(settings.database_url, echo=settings.database_echo)

    return _engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


def get_session_factory() -> async_sessionmaker:
    """Get or create the session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())

    return _session_factory


async def init_db(engine: Optional[AsyncEngine] = None):
    """
    Initialize database tables.

    Note: In production, use Alembic migrations instead.
    """
    from database.models import Base

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections."""
    global _engine, _session_factory

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


@asynccontextmanager
async def get_db_context(session_factory: Optional[async_sessionmaker] = None):
    """
    Context manager for database sessions.

    Commits on success and rolls back on error.

    Usage:
        async with get_db_context() as db:
            result = await db.execute(select(ComplianceReportRow))
    """
    factory = session_factory or get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
