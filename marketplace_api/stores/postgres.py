"""PostgreSQL store with async SQLAlchemy.

Handles:
- Database session management
- Connection pooling
- Id generation and the JSON column type shared by all models
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from uuid import uuid4

from sqlalchemy import JSON, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from marketplace_api.settings import get_settings

# Schema-less values (metadata, attribute values, ...) are stored as JSON, JSONB on Postgres.
JsonType = JSON().with_variant(JSONB(), "postgresql")


def generate_id() -> str:
    """Generate an opaque record id."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    # Fetch server-generated timestamps on INSERT/UPDATE; async sessions can't lazy-load them.
    __mapper_args__ = {"eager_defaults": True}


# Engine and session factory (initialized on startup)
_engine = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db() -> None:
    """Initialize database connection pool."""
    global _engine, _session_factory

    settings = get_settings()
    engine_kwargs: dict[str, object] = {"echo": settings.debug}
    if settings.database_backend == "postgresql":
        engine_kwargs.update(pool_size=5, max_overflow=10, pool_pre_ping=True)

    _engine = create_async_engine(settings.async_database_url, **engine_kwargs)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def close_db() -> None:
    """Close database connection pool."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def ping_db() -> None:
    """Run a trivial query to verify connectivity."""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session context manager.

    Usage:
        async with get_session() as session:
            result = await session.execute(query)
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create all tables (there are no migrations)."""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    # Import models so every table is registered on Base.metadata.
    import marketplace_api.models  # noqa: F401

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables() -> None:
    """Drop all tables (for testing only)."""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
