"""Async SQLAlchemy session factory helpers."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from identity_service.application.errors import StorageError


def create_session_factory(database_url: str) -> async_sessionmaker[AsyncSession]:
    """Create a reusable async session factory for the provided database URL."""

    engine = create_async_engine(database_url)
    return async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def storage_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Open one session and surface driver failures as StorageError.

    Uncommitted work is rolled back when the block exits early.
    """

    try:
        async with session_factory() as session:
            yield session
    except SQLAlchemyError as exc:
        raise StorageError(f"storage operation failed: {type(exc).__name__}") from exc
