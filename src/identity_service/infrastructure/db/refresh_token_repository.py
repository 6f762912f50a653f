"""SQLAlchemy adapter for refresh-token persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Any, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_service.application.ports.audit_repository_port import AuditEntryCreateInput
from identity_service.application.ports.refresh_token_repository_port import (
    RefreshTokenCreateInput,
    RefreshTokenRecord,
    RefreshTokenRepositoryPort,
)
from identity_service.infrastructure.db.audit_repository import build_audit_insert
from identity_service.infrastructure.db.metadata import refresh_tokens
from identity_service.infrastructure.db.row_values import as_optional_utc, as_utc, as_uuid
from identity_service.infrastructure.db.session import storage_session


class SqlAlchemyRefreshTokenRepository(RefreshTokenRepositoryPort):
    """Refresh-token repository backed by SQLAlchemy async sessions.

    Revocation always goes through ``UPDATE ... WHERE revoked_at IS NULL`` so
    concurrent writers serialize on the row and at most one of them wins.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_token(
        self,
        payload: RefreshTokenCreateInput,
        *,
        audit: AuditEntryCreateInput | None = None,
    ) -> RefreshTokenRecord:
        """Persist a token digest row, plus the optional audit entry, in one commit."""

        async with storage_session(self._session_factory) as session:
            result = await session.execute(_build_token_insert(payload))
            row = result.mappings().one()
            if audit is not None:
                await session.execute(build_audit_insert(audit))
            await session.commit()

        return _to_refresh_token_record(row)

    async def get_by_digest(self, *, token_digest: str) -> RefreshTokenRecord | None:
        """Return token by digest whatever its revocation or expiry state."""

        statement = (
            sa.select(*refresh_tokens.c)
            .where(refresh_tokens.c.token_digest == token_digest)
            .limit(1)
        )

        async with storage_session(self._session_factory) as session:
            result = await session.execute(statement)
            row = result.mappings().first()

        if row is None:
            return None
        return _to_refresh_token_record(row)

    async def list_active_for_account(
        self,
        *,
        account_id: UUID,
        now: datetime,
    ) -> list[RefreshTokenRecord]:
        """Return non-revoked, non-expired tokens for one account, oldest first."""

        statement = (
            sa.select(*refresh_tokens.c)
            .where(
                refresh_tokens.c.account_id == account_id,
                refresh_tokens.c.revoked_at.is_(None),
                refresh_tokens.c.expires_at >= now,
            )
            .order_by(refresh_tokens.c.issued_at.asc())
        )

        async with storage_session(self._session_factory) as session:
            result = await session.execute(statement)
            rows = result.mappings().all()

        return [_to_refresh_token_record(row) for row in rows]

    async def rotate_token(
        self,
        *,
        token_id: UUID,
        successor: RefreshTokenCreateInput,
        rotated_at: datetime,
        audit: AuditEntryCreateInput | None = None,
    ) -> RefreshTokenRecord | None:
        """Revoke predecessor, insert successor, and audit in one transaction."""

        revoke_statement = (
            sa.update(refresh_tokens)
            .where(
                refresh_tokens.c.id == token_id,
                refresh_tokens.c.revoked_at.is_(None),
            )
            .values(revoked_at=rotated_at, replaced_by_digest=successor.token_digest)
        )

        async with storage_session(self._session_factory) as session:
            revoked = cast(CursorResult[Any], await session.execute(revoke_statement))
            if int(revoked.rowcount or 0) != 1:
                await session.rollback()
                return None

            result = await session.execute(_build_token_insert(successor))
            row = result.mappings().one()
            if audit is not None:
                await session.execute(build_audit_insert(audit))
            await session.commit()

        return _to_refresh_token_record(row)

    async def revoke_token(
        self,
        *,
        token_id: UUID,
        revoked_at: datetime,
        audit: AuditEntryCreateInput | None = None,
    ) -> bool:
        """Revoke one token; False when it was already revoked."""

        statement = (
            sa.update(refresh_tokens)
            .where(
                refresh_tokens.c.id == token_id,
                refresh_tokens.c.revoked_at.is_(None),
            )
            .values(revoked_at=revoked_at)
        )

        async with storage_session(self._session_factory) as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            if int(result.rowcount or 0) == 0:
                await session.rollback()
                return False
            if audit is not None:
                await session.execute(build_audit_insert(audit))
            await session.commit()

        return True

    async def revoke_active_tokens_for_account(
        self,
        *,
        account_id: UUID,
        revoked_at: datetime,
        audit: AuditEntryCreateInput | None = None,
    ) -> int:
        """Revoke all currently non-revoked tokens for one account."""

        statement = (
            sa.update(refresh_tokens)
            .where(
                refresh_tokens.c.account_id == account_id,
                refresh_tokens.c.revoked_at.is_(None),
            )
            .values(revoked_at=revoked_at)
        )

        async with storage_session(self._session_factory) as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            if audit is not None:
                await session.execute(build_audit_insert(audit))
            await session.commit()

        return int(result.rowcount or 0)

    async def purge_revoked_expired_before(self, *, cutoff: datetime) -> int:
        """Delete revoked token rows whose expiry is older than cutoff."""

        statement = sa.delete(refresh_tokens).where(
            refresh_tokens.c.revoked_at.is_not(None),
            refresh_tokens.c.expires_at < cutoff,
        )

        async with storage_session(self._session_factory) as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0)


def _build_token_insert(payload: RefreshTokenCreateInput) -> sa.Insert:
    return (
        sa.insert(refresh_tokens)
        .values(
            id=payload.token_id,
            account_id=payload.account_id,
            token_digest=payload.token_digest,
            issued_at=payload.issued_at,
            expires_at=payload.expires_at,
        )
        .returning(*refresh_tokens.c)
    )


def _to_refresh_token_record(row: sa.RowMapping) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        token_id=as_uuid(row["id"]),
        account_id=as_uuid(row["account_id"]),
        token_digest=cast(str, row["token_digest"]),
        issued_at=as_utc(row["issued_at"]),
        expires_at=as_utc(row["expires_at"]),
        revoked_at=as_optional_utc(row["revoked_at"]),
        replaced_by_digest=cast(str | None, row["replaced_by_digest"]),
    )
