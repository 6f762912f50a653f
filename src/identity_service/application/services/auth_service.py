"""Application authentication service for login and session lifecycle use cases."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

from identity_service.application.dto.auth_models import (
    AuthTokens,
    LoginRequest,
    OperationResult,
    RefreshRequest,
    RevokeRequest,
)
from identity_service.application.errors import StorageError
from identity_service.application.ports.account_store_port import AccountStorePort
from identity_service.application.ports.audit_repository_port import AuditDraft
from identity_service.application.services.refresh_token_service import (
    RefreshTokenService,
    RevocationOutcome,
    RotationOutcome,
)
from identity_service.domain.auth.audit_actions import AuditAction, AuditSubject
from identity_service.domain.auth.credentials import (
    CredentialValidationError,
    normalize_account_email,
)
from identity_service.domain.auth.failures import AuthFailure

logger = logging.getLogger(__name__)

NowCallable = Callable[[], datetime]

_ROTATION_FAILURES: dict[RotationOutcome, AuthFailure] = {
    RotationOutcome.INVALID_TOKEN: AuthFailure.INVALID_TOKEN,
    RotationOutcome.REVOKED_TOKEN_REUSE: AuthFailure.REVOKED_TOKEN_REUSE,
    RotationOutcome.TOKEN_EXPIRED: AuthFailure.TOKEN_EXPIRED,
    RotationOutcome.ACCOUNT_INACTIVE: AuthFailure.ACCOUNT_INACTIVE,
}

_REVOCATION_MESSAGES: dict[RevocationOutcome, str] = {
    RevocationOutcome.REVOKED: "Token revoked successfully",
    RevocationOutcome.ALREADY_REVOKED: "Token already revoked",
    RevocationOutcome.NOT_FOUND: "Token not found; nothing to revoke",
}


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class AuthService:
    """Authenticate credentials and manage refresh-token backed sessions."""

    def __init__(
        self,
        *,
        accounts: AccountStorePort,
        refresh_tokens: RefreshTokenService,
        now: NowCallable = _utc_now,
    ) -> None:
        self._accounts = accounts
        self._refresh_tokens = refresh_tokens
        self._now = now

    async def login(self, request: LoginRequest) -> OperationResult[AuthTokens]:
        """Verify credentials and issue a token pair.

        Unknown emails and wrong passwords produce the same failure so callers
        cannot probe which accounts exist.
        """

        if not request.email.strip() or not request.password.strip():
            return OperationResult.failed(AuthFailure.INVALID_CREDENTIALS)
        try:
            email = normalize_account_email(email=request.email)
        except CredentialValidationError:
            return OperationResult.failed(AuthFailure.INVALID_CREDENTIALS)

        try:
            account = await self._accounts.get_by_email(email=email)
            if account is None:
                logger.info("login_failed reason=unknown_account")
                return OperationResult.failed(AuthFailure.INVALID_CREDENTIALS)

            if not account.is_active:
                logger.info("login_blocked reason=inactive account_id=%s", account.account_id)
                return OperationResult.failed(AuthFailure.ACCOUNT_INACTIVE)

            if not await self._accounts.verify_password(
                account_id=account.account_id,
                password=request.password,
            ):
                logger.info("login_failed reason=wrong_password account_id=%s", account.account_id)
                return OperationResult.failed(AuthFailure.INVALID_CREDENTIALS)

            now = self._now()
            if account.is_locked_out(now=now):
                logger.info("login_blocked reason=locked account_id=%s", account.account_id)
                return OperationResult.failed(AuthFailure.ACCOUNT_LOCKED)

            pair = await self._refresh_tokens.issue_pair(
                account=account,
                audit=AuditDraft(
                    action=AuditAction.LOGGED_IN,
                    detail=f"Account logged in with email {account.email}",
                    actor_account_id=account.account_id,
                    subject_type=AuditSubject.ACCOUNT,
                    subject_id=account.account_id,
                ),
            )
        except StorageError:
            logger.exception("login_failed reason=storage")
            return OperationResult.failed(AuthFailure.STORAGE_ERROR)

        # Tokens and the logged-in audit entry are committed at this point.
        try:
            await self._accounts.set_last_login(account_id=account.account_id, logged_in_at=now)
        except StorageError:
            logger.exception("last_login_update_failed account_id=%s", account.account_id)

        logger.info("login_succeeded account_id=%s", account.account_id)
        return OperationResult.succeeded(
            "Login successful",
            AuthTokens.from_pair(pair, email=account.email, roles=account.roles),
        )

    async def refresh(self, request: RefreshRequest) -> OperationResult[AuthTokens]:
        """Rotate a refresh token into a new token pair."""

        if not request.refresh_token.strip():
            return OperationResult.failed(
                AuthFailure.VALIDATION_ERROR,
                "Refresh token is required",
            )

        try:
            result = await self._refresh_tokens.rotate(
                secret=request.refresh_token,
                audit=AuditDraft(
                    action=AuditAction.TOKEN_REFRESHED,
                    detail="Refresh token exchanged for a new token pair",
                ),
            )
        except StorageError:
            logger.exception("token_refresh_failed reason=storage")
            return OperationResult.failed(AuthFailure.STORAGE_ERROR)

        if result.pair is None or result.account is None:
            logger.info("token_refresh_rejected outcome=%s", result.outcome)
            return OperationResult.failed(
                _ROTATION_FAILURES.get(result.outcome, AuthFailure.INVALID_TOKEN)
            )

        return OperationResult.succeeded(
            "Token refreshed successfully",
            AuthTokens.from_pair(
                result.pair,
                email=result.account.email,
                roles=result.account.roles,
            ),
        )

    async def revoke(self, request: RevokeRequest) -> OperationResult[None]:
        """Revoke one refresh token; unknown and already-revoked tokens still succeed."""

        if not request.refresh_token.strip():
            return OperationResult.failed(
                AuthFailure.VALIDATION_ERROR,
                "Refresh token is required",
            )

        try:
            result = await self._refresh_tokens.revoke(
                secret=request.refresh_token,
                audit=AuditDraft(
                    action=AuditAction.TOKEN_REVOKED,
                    detail="Refresh token revoked",
                    actor_account_id=request.actor_account_id,
                ),
            )
        except StorageError:
            logger.exception("token_revoke_failed reason=storage")
            return OperationResult.failed(AuthFailure.STORAGE_ERROR)

        return OperationResult.succeeded(_REVOCATION_MESSAGES[result.outcome])

    async def revoke_all_sessions(
        self,
        *,
        account_id: UUID,
        actor_account_id: UUID | None = None,
    ) -> OperationResult[int]:
        """Revoke every active refresh token of one account."""

        try:
            account = await self._accounts.get_by_id(account_id=account_id)
            if account is None:
                return OperationResult.failed(AuthFailure.NOT_FOUND)

            count = await self._refresh_tokens.revoke_all(
                account_id=account_id,
                audit=AuditDraft(
                    action=AuditAction.SESSIONS_REVOKED,
                    detail="All active sessions revoked",
                    actor_account_id=actor_account_id,
                    subject_type=AuditSubject.ACCOUNT,
                ),
            )
        except StorageError:
            logger.exception("sessions_revoke_failed reason=storage account_id=%s", account_id)
            return OperationResult.failed(AuthFailure.STORAGE_ERROR)

        return OperationResult.succeeded("All sessions revoked", count)
