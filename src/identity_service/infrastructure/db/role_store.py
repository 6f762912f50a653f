"""SQLAlchemy adapter for the role catalog."""

from __future__ import annotations

from typing import cast

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_service.application.ports.role_store_port import RoleStorePort
from identity_service.infrastructure.db.metadata import roles
from identity_service.infrastructure.db.session import storage_session


class SqlAlchemyRoleStore(RoleStorePort):
    """Read-only role catalog backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def role_exists(self, *, name: str) -> bool:
        statement = sa.select(roles.c.id).where(roles.c.name == name).limit(1)

        async with storage_session(self._session_factory) as session:
            result = await session.execute(statement)
            return result.scalar_one_or_none() is not None

    async def list_roles(self) -> list[str]:
        """Return role names ordered alphabetically."""

        statement = sa.select(roles.c.name).order_by(roles.c.name.asc())

        async with storage_session(self._session_factory) as session:
            result = await session.execute(statement)
            return [cast(str, name) for name in result.scalars()]
