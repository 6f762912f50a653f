"""Refresh-token issuing, rotation, revocation, and reuse detection."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from uuid import UUID, uuid4

from identity_service.application.dto.auth_models import IssuedRefreshToken, IssuedTokenPair
from identity_service.application.ports.access_token_port import AccessTokenIssuerPort
from identity_service.application.ports.account_store_port import AccountRecord, AccountStorePort
from identity_service.application.ports.audit_repository_port import (
    AuditDraft,
    AuditRepositoryPort,
)
from identity_service.application.ports.refresh_token_repository_port import (
    RefreshTokenCreateInput,
    RefreshTokenRecord,
    RefreshTokenRepositoryPort,
)
from identity_service.application.ports.token_hasher_port import TokenHasherPort
from identity_service.domain.auth.audit_actions import AuditAction, AuditSubject

logger = logging.getLogger(__name__)

NowCallable = Callable[[], datetime]

REFRESH_TOKEN_SECRET_BYTES = 32


class RotationOutcome(StrEnum):
    """Possible outcomes of presenting a refresh token for rotation."""

    ROTATED = "rotated"
    INVALID_TOKEN = "invalid_token"
    REVOKED_TOKEN_REUSE = "revoked_token_reuse"
    TOKEN_EXPIRED = "token_expired"
    ACCOUNT_INACTIVE = "account_inactive"


@dataclass(frozen=True)
class RotationResult:
    outcome: RotationOutcome
    pair: IssuedTokenPair | None = None
    account: AccountRecord | None = None


class RevocationOutcome(StrEnum):
    """Possible outcomes of revoking one refresh token."""

    NOT_FOUND = "not_found"
    ALREADY_REVOKED = "already_revoked"
    REVOKED = "revoked"


@dataclass(frozen=True)
class RevocationResult:
    outcome: RevocationOutcome
    record: RefreshTokenRecord | None = None


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class RefreshTokenService:
    """Own the refresh-token state machine: Active -> Rotated | Revoked, Active -> Expired.

    Plaintext secrets leave this service exactly once, in the value returned by
    ``issue``/``issue_pair``/``rotate``; only their digests are persisted or
    looked up. A revoked token presented again is treated as theft and every
    active token of the owning account is revoked.
    """

    def __init__(
        self,
        *,
        tokens: RefreshTokenRepositoryPort,
        accounts: AccountStorePort,
        audits: AuditRepositoryPort,
        token_hasher: TokenHasherPort,
        access_tokens: AccessTokenIssuerPort,
        refresh_token_lifetime: timedelta = timedelta(days=7),
        now: NowCallable = _utc_now,
    ) -> None:
        self._tokens = tokens
        self._accounts = accounts
        self._audits = audits
        self._token_hasher = token_hasher
        self._access_tokens = access_tokens
        self._refresh_token_lifetime = refresh_token_lifetime
        self._now = now

    async def issue(
        self,
        *,
        account_id: UUID,
        lifetime: timedelta | None = None,
        audit: AuditDraft | None = None,
    ) -> IssuedRefreshToken:
        """Create and persist one active refresh token for the account."""

        issued_at = self._now()
        secret, payload = self._new_token(
            account_id=account_id,
            issued_at=issued_at,
            lifetime=lifetime if lifetime is not None else self._refresh_token_lifetime,
        )
        record = await self._tokens.create_token(
            payload,
            audit=(
                audit.resolve(subject_id=payload.token_id, created_at=issued_at)
                if audit is not None
                else None
            ),
        )
        logger.info(
            "refresh_token_issued account_id=%s token_id=%s",
            account_id,
            record.token_id,
        )
        return IssuedRefreshToken(secret=secret, record=record)

    async def issue_pair(
        self,
        *,
        account: AccountRecord,
        audit: AuditDraft | None = None,
    ) -> IssuedTokenPair:
        """Issue a fresh access token plus a persisted refresh token."""

        refresh = await self.issue(account_id=account.account_id, audit=audit)
        access = self._access_tokens.issue(account)
        return IssuedTokenPair(access=access, refresh=refresh)

    async def rotate(self, *, secret: str, audit: AuditDraft | None = None) -> RotationResult:
        """Exchange one valid refresh token for a new pair, revoking the presented one."""

        current = await self._find_by_secret(secret)
        if current is None:
            return RotationResult(outcome=RotationOutcome.INVALID_TOKEN)

        if current.is_revoked:
            await self._revoke_family_after_reuse(current)
            return RotationResult(outcome=RotationOutcome.REVOKED_TOKEN_REUSE)

        now = self._now()
        if current.is_expired(now=now):
            return RotationResult(outcome=RotationOutcome.TOKEN_EXPIRED)

        account = await self._accounts.get_by_id(account_id=current.account_id)
        if account is None:
            logger.warning(
                "refresh_token_account_missing token_id=%s account_id=%s",
                current.token_id,
                current.account_id,
            )
            return RotationResult(outcome=RotationOutcome.INVALID_TOKEN)
        if not account.is_active:
            return RotationResult(outcome=RotationOutcome.ACCOUNT_INACTIVE, account=account)

        new_secret, successor = self._new_token(
            account_id=account.account_id,
            issued_at=now,
            lifetime=self._refresh_token_lifetime,
        )
        rotated = await self._tokens.rotate_token(
            token_id=current.token_id,
            successor=successor,
            rotated_at=now,
            audit=(
                audit.resolve(subject_id=current.token_id, created_at=now)
                if audit is not None
                else None
            ),
        )
        if rotated is None:
            # A concurrent rotation or revocation committed first.
            await self._revoke_family_after_reuse(current)
            return RotationResult(outcome=RotationOutcome.REVOKED_TOKEN_REUSE)

        logger.info(
            "refresh_token_rotated account_id=%s token_id=%s successor_id=%s",
            account.account_id,
            current.token_id,
            rotated.token_id,
        )
        pair = IssuedTokenPair(
            access=self._access_tokens.issue(account),
            refresh=IssuedRefreshToken(secret=new_secret, record=rotated),
        )
        return RotationResult(outcome=RotationOutcome.ROTATED, pair=pair, account=account)

    async def revoke(self, *, secret: str, audit: AuditDraft | None = None) -> RevocationResult:
        """Revoke one refresh token. Repeated revocation is a no-op success."""

        current = await self._find_by_secret(secret)
        if current is None:
            return RevocationResult(outcome=RevocationOutcome.NOT_FOUND)

        now = self._now()
        entry = (
            audit.resolve(subject_id=current.token_id, created_at=now)
            if audit is not None
            else None
        )
        if not current.is_revoked:
            revoked = await self._tokens.revoke_token(
                token_id=current.token_id,
                revoked_at=now,
                audit=entry,
            )
            if revoked:
                logger.info(
                    "refresh_token_revoked account_id=%s token_id=%s",
                    current.account_id,
                    current.token_id,
                )
                return RevocationResult(outcome=RevocationOutcome.REVOKED, record=current)

        if entry is not None:
            await self._audits.append_entry(entry)
        return RevocationResult(outcome=RevocationOutcome.ALREADY_REVOKED, record=current)

    async def revoke_all(self, *, account_id: UUID, audit: AuditDraft | None = None) -> int:
        """Revoke every active refresh token of one account."""

        now = self._now()
        count = await self._tokens.revoke_active_tokens_for_account(
            account_id=account_id,
            revoked_at=now,
            audit=(
                audit.resolve(subject_id=account_id, created_at=now)
                if audit is not None
                else None
            ),
        )
        logger.info("refresh_tokens_revoked_all account_id=%s count=%s", account_id, count)
        return count

    async def purge(self, *, retention: timedelta) -> int:
        """Delete revoked tokens whose expiry is older than the retention window."""

        cutoff = self._now() - retention
        return await self._tokens.purge_revoked_expired_before(cutoff=cutoff)

    async def _find_by_secret(self, secret: str) -> RefreshTokenRecord | None:
        try:
            digest = self._token_hasher.digest(secret)
        except ValueError:
            return None
        return await self._tokens.get_by_digest(token_digest=digest)

    async def _revoke_family_after_reuse(self, presented: RefreshTokenRecord) -> None:
        count = await self.revoke_all(
            account_id=presented.account_id,
            audit=AuditDraft(
                action=AuditAction.TOKEN_REUSE_DETECTED,
                detail=f"Revoked refresh token presented again; token_id={presented.token_id}",
                subject_type=AuditSubject.ACCOUNT,
            ),
        )
        logger.warning(
            "refresh_token_reuse_detected account_id=%s token_id=%s revoked_count=%s",
            presented.account_id,
            presented.token_id,
            count,
        )

    def _new_token(
        self,
        *,
        account_id: UUID,
        issued_at: datetime,
        lifetime: timedelta,
    ) -> tuple[str, RefreshTokenCreateInput]:
        secret = secrets.token_urlsafe(REFRESH_TOKEN_SECRET_BYTES)
        payload = RefreshTokenCreateInput(
            token_id=uuid4(),
            account_id=account_id,
            token_digest=self._token_hasher.digest(secret),
            issued_at=issued_at,
            expires_at=issued_at + lifetime,
        )
        return secret, payload
