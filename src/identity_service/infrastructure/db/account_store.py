"""SQLAlchemy adapter for the account directory."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_service.application.errors import DuplicateAccountError
from identity_service.application.ports.account_store_port import (
    AccountCreateInput,
    AccountRecord,
    AccountStorePort,
)
from identity_service.application.ports.password_hasher_port import PasswordHasherPort
from identity_service.infrastructure.db.metadata import account_roles, accounts, roles
from identity_service.infrastructure.db.row_values import as_optional_utc, as_utc, as_uuid
from identity_service.infrastructure.db.session import storage_session

_ACCOUNT_COLUMNS = (
    accounts.c.id,
    accounts.c.email,
    accounts.c.first_name,
    accounts.c.last_name,
    accounts.c.phone_number,
    accounts.c.is_active,
    accounts.c.lockout_end,
    accounts.c.last_login_at,
    accounts.c.created_at,
)


class SqlAlchemyAccountStore(AccountStorePort):
    """Account store backed by SQLAlchemy async sessions.

    Password digests never leave this adapter; callers only get a verification
    verdict.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        password_hasher: PasswordHasherPort,
    ) -> None:
        self._session_factory = session_factory
        self._password_hasher = password_hasher

    async def get_by_email(self, *, email: str) -> AccountRecord | None:
        """Return account by normalized email."""

        return await self._get_one(accounts.c.email == email)

    async def get_by_id(self, *, account_id: UUID) -> AccountRecord | None:
        """Return account by id."""

        return await self._get_one(accounts.c.id == account_id)

    async def create_account(self, payload: AccountCreateInput) -> AccountRecord:
        """Insert one account and return the persisted record."""

        statement = sa.insert(accounts).values(
            id=payload.account_id,
            email=payload.email,
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone_number=payload.phone_number,
            password_hash=payload.password_hash,
            password_salt=payload.password_salt,
            is_active=payload.is_active,
            created_at=payload.created_at,
        ).returning(*_ACCOUNT_COLUMNS)

        async with storage_session(self._session_factory) as session:
            try:
                result = await session.execute(statement)
            except IntegrityError as exc:
                raise DuplicateAccountError(email=payload.email) from exc
            row = result.mappings().one()
            await session.commit()

        return _to_account_record(row, role_names=())

    async def verify_password(self, *, account_id: UUID, password: str) -> bool:
        """Check plaintext against the stored digest and salt."""

        statement = sa.select(accounts.c.password_hash, accounts.c.password_salt).where(
            accounts.c.id == account_id
        )

        async with storage_session(self._session_factory) as session:
            result = await session.execute(statement)
            row = result.mappings().first()

        if row is None:
            return False
        return self._password_hasher.verify_password(
            password=password,
            password_hash=cast(str, row["password_hash"]),
            password_salt=cast(str, row["password_salt"]),
        )

    async def set_last_login(self, *, account_id: UUID, logged_in_at: datetime) -> None:
        statement = (
            sa.update(accounts)
            .where(accounts.c.id == account_id)
            .values(last_login_at=logged_in_at)
        )

        async with storage_session(self._session_factory) as session:
            await session.execute(statement)
            await session.commit()

    async def get_roles(self, *, account_id: UUID) -> list[str]:
        async with storage_session(self._session_factory) as session:
            return await _load_role_names(session, account_id=account_id)

    async def add_roles(self, *, account_id: UUID, role_names: Sequence[str]) -> None:
        """Link existing catalog roles to the account, skipping ones already linked."""

        if not role_names:
            return

        async with storage_session(self._session_factory) as session:
            role_ids = await _load_role_ids(session, role_names=role_names)
            linked = set(
                (
                    await session.execute(
                        sa.select(account_roles.c.role_id).where(
                            account_roles.c.account_id == account_id
                        )
                    )
                ).scalars()
            )
            missing = [role_id for role_id in role_ids if role_id not in linked]
            if missing:
                await session.execute(
                    sa.insert(account_roles),
                    [{"account_id": account_id, "role_id": role_id} for role_id in missing],
                )
            await session.commit()

    async def remove_roles(self, *, account_id: UUID, role_names: Sequence[str]) -> None:
        if not role_names:
            return

        role_ids = sa.select(roles.c.id).where(roles.c.name.in_(list(role_names)))
        statement = sa.delete(account_roles).where(
            account_roles.c.account_id == account_id,
            account_roles.c.role_id.in_(role_ids),
        )

        async with storage_session(self._session_factory) as session:
            await session.execute(statement)
            await session.commit()

    async def _get_one(self, condition: sa.ColumnElement[bool]) -> AccountRecord | None:
        statement = sa.select(*_ACCOUNT_COLUMNS).where(condition).limit(1)

        async with storage_session(self._session_factory) as session:
            result = await session.execute(statement)
            row = result.mappings().first()
            if row is None:
                return None
            role_names = await _load_role_names(session, account_id=as_uuid(row["id"]))

        return _to_account_record(row, role_names=tuple(role_names))


async def _load_role_names(session: AsyncSession, *, account_id: UUID) -> list[str]:
    statement = (
        sa.select(roles.c.name)
        .select_from(account_roles.join(roles, account_roles.c.role_id == roles.c.id))
        .where(account_roles.c.account_id == account_id)
        .order_by(roles.c.name.asc())
    )
    result = await session.execute(statement)
    return [cast(str, name) for name in result.scalars()]


async def _load_role_ids(session: AsyncSession, *, role_names: Sequence[str]) -> list[int]:
    statement = sa.select(roles.c.id).where(roles.c.name.in_(list(role_names)))
    result = await session.execute(statement)
    return [int(role_id) for role_id in result.scalars()]


def _to_account_record(row: sa.RowMapping, *, role_names: tuple[str, ...]) -> AccountRecord:
    return AccountRecord(
        account_id=as_uuid(row["id"]),
        email=cast(str, row["email"]),
        first_name=cast(str, row["first_name"]),
        last_name=cast(str, row["last_name"]),
        phone_number=cast(str | None, row["phone_number"]),
        is_active=bool(row["is_active"]),
        roles=role_names,
        lockout_end=as_optional_utc(row["lockout_end"]),
        last_login_at=as_optional_utc(row["last_login_at"]),
        created_at=as_utc(row["created_at"]),
    )
