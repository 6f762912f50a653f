"""SQLAlchemy adapter for the append-only identity audit trail."""

from __future__ import annotations

from typing import cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_service.application.ports.audit_repository_port import (
    AuditEntryCreateInput,
    AuditEntryRecord,
    AuditRepositoryPort,
)
from identity_service.domain.auth.audit_actions import AuditAction, AuditSubject
from identity_service.infrastructure.db.metadata import audit_entries
from identity_service.infrastructure.db.row_values import as_optional_uuid, as_utc, as_uuid
from identity_service.infrastructure.db.session import storage_session


def build_audit_insert(payload: AuditEntryCreateInput) -> sa.Insert:
    """Return the insert statement for one audit entry.

    Token adapters execute it inside their own transaction.
    """

    return sa.insert(audit_entries).values(
        action=payload.action.value,
        subject_type=payload.subject_type.value,
        subject_id=payload.subject_id,
        actor_account_id=payload.actor_account_id,
        detail=payload.detail,
        created_at=payload.created_at,
    )


class SqlAlchemyAuditRepository(AuditRepositoryPort):
    """Audit repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append_entry(self, payload: AuditEntryCreateInput) -> int:
        """Insert an audit row and return its numeric id."""

        statement = build_audit_insert(payload).returning(audit_entries.c.id)

        async with storage_session(self._session_factory) as session:
            result = await session.execute(statement)
            inserted_id = result.scalar_one()
            await session.commit()

        return int(inserted_id)

    async def list_for_subject(self, *, subject_id: UUID) -> list[AuditEntryRecord]:
        """Return audit entries for one subject ordered by creation time."""

        statement = (
            sa.select(*audit_entries.c)
            .where(audit_entries.c.subject_id == subject_id)
            .order_by(audit_entries.c.created_at.asc(), audit_entries.c.id.asc())
        )

        async with storage_session(self._session_factory) as session:
            result = await session.execute(statement)
            rows = result.mappings().all()

        return [_to_audit_entry_record(row) for row in rows]


def _to_audit_entry_record(row: sa.RowMapping) -> AuditEntryRecord:
    return AuditEntryRecord(
        entry_id=int(row["id"]),
        action=AuditAction(cast(str, row["action"])),
        subject_type=AuditSubject(cast(str, row["subject_type"])),
        subject_id=as_uuid(row["subject_id"]),
        actor_account_id=as_optional_uuid(row["actor_account_id"]),
        detail=cast(str, row["detail"]),
        created_at=as_utc(row["created_at"]),
    )
