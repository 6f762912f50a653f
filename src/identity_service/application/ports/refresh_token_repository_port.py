"""Port for durable refresh-token persistence operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from identity_service.application.ports.audit_repository_port import AuditEntryCreateInput


@dataclass(frozen=True)
class RefreshTokenCreateInput:
    """Input payload for inserting one refresh-token record."""

    token_id: UUID
    account_id: UUID
    token_digest: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RefreshTokenRecord:
    """Persisted refresh-token model. The plaintext secret is never stored."""

    token_id: UUID
    account_id: UUID
    token_digest: str
    issued_at: datetime
    expires_at: datetime
    revoked_at: datetime | None
    replaced_by_digest: str | None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, *, now: datetime) -> bool:
        return now > self.expires_at

    def is_valid(self, *, now: datetime) -> bool:
        return not self.is_revoked and not self.is_expired(now=now)


class RefreshTokenRepositoryPort(Protocol):
    """Refresh-token store contract.

    Every mutating method that accepts ``audit`` must commit the audit entry in
    the same transaction as the token change.
    """

    async def create_token(
        self,
        payload: RefreshTokenCreateInput,
        *,
        audit: AuditEntryCreateInput | None = None,
    ) -> RefreshTokenRecord:
        """Persist a new active token record."""

    async def get_by_digest(self, *, token_digest: str) -> RefreshTokenRecord | None:
        """Return the token with this digest, whatever its state."""

    async def list_active_for_account(
        self,
        *,
        account_id: UUID,
        now: datetime,
    ) -> list[RefreshTokenRecord]:
        """Return non-revoked, non-expired tokens for one account."""

    async def rotate_token(
        self,
        *,
        token_id: UUID,
        successor: RefreshTokenCreateInput,
        rotated_at: datetime,
        audit: AuditEntryCreateInput | None = None,
    ) -> RefreshTokenRecord | None:
        """Revoke the predecessor and insert its successor atomically.

        Returns None, with nothing written, when the predecessor is already
        revoked at write time (a concurrent rotation or revocation won).
        """

    async def revoke_token(
        self,
        *,
        token_id: UUID,
        revoked_at: datetime,
        audit: AuditEntryCreateInput | None = None,
    ) -> bool:
        """Revoke one token; return False when it was already revoked."""

    async def revoke_active_tokens_for_account(
        self,
        *,
        account_id: UUID,
        revoked_at: datetime,
        audit: AuditEntryCreateInput | None = None,
    ) -> int:
        """Revoke every non-revoked token of one account and return the count."""

    async def purge_revoked_expired_before(self, *, cutoff: datetime) -> int:
        """Delete revoked tokens that expired before ``cutoff``; return the count."""
