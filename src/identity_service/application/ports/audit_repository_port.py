"""Port for the append-only security audit trail."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from identity_service.domain.auth.audit_actions import AuditAction, AuditSubject


@dataclass(frozen=True)
class AuditEntryCreateInput:
    """Input payload for inserting one audit entry."""

    action: AuditAction
    subject_type: AuditSubject
    subject_id: UUID
    detail: str
    created_at: datetime
    actor_account_id: UUID | None = None


@dataclass(frozen=True)
class AuditEntryRecord:
    """Persisted audit entry model."""

    entry_id: int
    action: AuditAction
    subject_type: AuditSubject
    subject_id: UUID
    actor_account_id: UUID | None
    detail: str
    created_at: datetime


@dataclass(frozen=True)
class AuditDraft:
    """Audit details prepared by a use case before the affected row is known.

    Token stores resolve the draft against the row they mutate so the entry is
    written in the same transaction as the token change. ``subject_id`` set on
    the draft overrides the mutated row's id (e.g. registration audits the
    account, not the refresh token).
    """

    action: AuditAction
    detail: str
    actor_account_id: UUID | None = None
    subject_type: AuditSubject = AuditSubject.REFRESH_TOKEN
    subject_id: UUID | None = None

    def resolve(self, *, subject_id: UUID, created_at: datetime) -> AuditEntryCreateInput:
        """Bind the draft to a concrete subject and timestamp."""

        return AuditEntryCreateInput(
            action=self.action,
            subject_type=self.subject_type,
            subject_id=self.subject_id or subject_id,
            detail=self.detail,
            created_at=created_at,
            actor_account_id=self.actor_account_id,
        )


class AuditRepositoryPort(Protocol):
    """Async audit repository contract."""

    async def append_entry(self, payload: AuditEntryCreateInput) -> int:
        """Append an audit entry and return its numeric id."""

    async def list_for_subject(self, *, subject_id: UUID) -> list[AuditEntryRecord]:
        """Return audit entries for one subject ordered by creation time."""
