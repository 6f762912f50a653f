"""Application service for self-service account registration."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from uuid import uuid4

from identity_service.application.dto.auth_models import (
    AuthTokens,
    OperationResult,
    RegisterRequest,
)
from identity_service.application.errors import DuplicateAccountError, StorageError
from identity_service.application.ports.account_store_port import (
    AccountCreateInput,
    AccountStorePort,
)
from identity_service.application.ports.audit_repository_port import AuditDraft
from identity_service.application.ports.password_hasher_port import PasswordHasherPort
from identity_service.application.ports.role_store_port import RoleStorePort
from identity_service.application.services.refresh_token_service import RefreshTokenService
from identity_service.domain.auth.audit_actions import AuditAction, AuditSubject
from identity_service.domain.auth.credentials import (
    CredentialValidationError,
    check_password_policy,
    normalize_account_email,
    normalize_person_name,
    normalize_phone_number,
    normalize_role_names,
)
from identity_service.domain.auth.failures import AuthFailure

logger = logging.getLogger(__name__)

NowCallable = Callable[[], datetime]

DEFAULT_REGISTRATION_ROLES: tuple[str, ...] = ("Manager", "Cashier")


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class RegistrationService:
    """Create accounts and hand back their first token pair."""

    def __init__(
        self,
        *,
        accounts: AccountStorePort,
        roles: RoleStorePort,
        password_hasher: PasswordHasherPort,
        refresh_tokens: RefreshTokenService,
        default_roles: Sequence[str] = DEFAULT_REGISTRATION_ROLES,
        now: NowCallable = _utc_now,
    ) -> None:
        self._accounts = accounts
        self._roles = roles
        self._password_hasher = password_hasher
        self._refresh_tokens = refresh_tokens
        self._default_roles = tuple(default_roles)
        self._now = now

    async def register(self, request: RegisterRequest) -> OperationResult[AuthTokens]:
        """Validate input, create the account, assign roles, and issue tokens."""

        try:
            email = normalize_account_email(email=request.email)
            first_name = normalize_person_name(value=request.first_name, field_label="First name")
            last_name = normalize_person_name(value=request.last_name, field_label="Last name")
            check_password_policy(password=request.password)
            phone_number = normalize_phone_number(phone_number=request.phone_number)
            requested_roles = (
                normalize_role_names(role_names=request.roles)
                if request.roles is not None
                else list(self._default_roles)
            )
        except CredentialValidationError as exc:
            logger.info("registration_rejected reason=validation detail=%s", exc)
            return OperationResult.failed(AuthFailure.VALIDATION_ERROR, str(exc))

        try:
            return await self._register(
                email=email,
                first_name=first_name,
                last_name=last_name,
                password=request.password,
                phone_number=phone_number,
                requested_roles=requested_roles,
            )
        except DuplicateAccountError:
            logger.info("registration_rejected reason=duplicate_email")
            return OperationResult.failed(AuthFailure.DUPLICATE_ACCOUNT)
        except StorageError:
            logger.exception("registration_failed reason=storage")
            return OperationResult.failed(AuthFailure.STORAGE_ERROR)

    async def _register(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password: str,
        phone_number: str | None,
        requested_roles: list[str],
    ) -> OperationResult[AuthTokens]:
        if await self._accounts.get_by_email(email=email) is not None:
            logger.info("registration_rejected reason=duplicate_email")
            return OperationResult.failed(AuthFailure.DUPLICATE_ACCOUNT)

        hashed = self._password_hasher.hash_password(password)
        if hashed.hashed is None:
            return OperationResult.failed(
                AuthFailure.VALIDATION_ERROR,
                hashed.error or "Password is invalid",
            )

        created = await self._accounts.create_account(
            AccountCreateInput(
                account_id=uuid4(),
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash=hashed.hashed.digest,
                password_salt=hashed.hashed.salt,
                created_at=self._now(),
                phone_number=phone_number,
            )
        )

        known_roles: list[str] = []
        for role_name in requested_roles:
            if await self._roles.role_exists(name=role_name):
                known_roles.append(role_name)
            else:
                logger.warning(
                    "registration_role_skipped account_id=%s role=%s",
                    created.account_id,
                    role_name,
                )
        if known_roles:
            await self._accounts.add_roles(account_id=created.account_id, role_names=known_roles)

        account = await self._accounts.get_by_id(account_id=created.account_id) or created
        pair = await self._refresh_tokens.issue_pair(
            account=account,
            audit=AuditDraft(
                action=AuditAction.REGISTERED,
                detail=f"Account registered with email {account.email}",
                actor_account_id=account.account_id,
                subject_type=AuditSubject.ACCOUNT,
                subject_id=account.account_id,
            ),
        )
        logger.info(
            "account_registered account_id=%s roles=%s",
            account.account_id,
            ",".join(account.roles),
        )
        return OperationResult.succeeded(
            "Registration successful",
            AuthTokens.from_pair(pair, email=account.email, roles=account.roles),
        )
