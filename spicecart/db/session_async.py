# spicecart/db/session_async.py
"""Async SQLAlchemy session utilities."""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from spicecart.core.config import settings


async_engine: AsyncEngine = create_async_engine(
    settings.ASYNC_DATABASE_URL,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    expire_on_commit=False,
    autoflush=False,
)

# Connects with the role that bypasses row-level restrictions on the catalog.
# Only the wholesale catalog reader is handed sessions from this factory.
elevated_engine: AsyncEngine = (
    async_engine
    if settings.elevated_database_url == settings.ASYNC_DATABASE_URL
    else create_async_engine(settings.elevated_database_url, pool_pre_ping=True)
)

ElevatedSessionLocal = async_sessionmaker(
    bind=elevated_engine,
    expire_on_commit=False,
    autoflush=False,
)


async def get_async_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an AsyncSession."""
    async with AsyncSessionLocal() as session:
        yield session


async def get_elevated_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency for read-only elevated catalog access."""
    async with ElevatedSessionLocal() as session:
        yield session
