"""Composition root wiring SQLAlchemy adapters into identity use cases."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_service.application.services.auth_service import AuthService
from identity_service.application.services.refresh_token_service import RefreshTokenService
from identity_service.application.services.registration_service import RegistrationService
from identity_service.application.services.role_assignment_service import RoleAssignmentService
from identity_service.application.services.token_reaper import TokenReaperService
from identity_service.config.settings import Settings
from identity_service.infrastructure.db.account_store import SqlAlchemyAccountStore
from identity_service.infrastructure.db.audit_repository import SqlAlchemyAuditRepository
from identity_service.infrastructure.db.refresh_token_repository import (
    SqlAlchemyRefreshTokenRepository,
)
from identity_service.infrastructure.db.role_store import SqlAlchemyRoleStore
from identity_service.infrastructure.security.jwt_tokens import (
    JwtAccessTokenIssuer,
    JwtAccessTokenValidator,
)
from identity_service.infrastructure.security.password_hasher import Pbkdf2PasswordHasher
from identity_service.infrastructure.security.token_hasher import Sha256TokenHasher

NowCallable = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class IdentityServices:
    """Composed use cases and shared adapters for one process."""

    auth: AuthService
    registration: RegistrationService
    role_assignment: RoleAssignmentService
    refresh_tokens: RefreshTokenService
    token_reaper: TokenReaperService
    access_token_validator: JwtAccessTokenValidator
    audit_repository: SqlAlchemyAuditRepository


def build_identity_services(
    *,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    now: NowCallable = _utc_now,
) -> IdentityServices:
    """Build every identity use case from settings and one session factory.

    Raises ConfigurationError when the JWT configuration is missing or weak.
    """

    jwt_options = settings.jwt_options()
    password_hasher = Pbkdf2PasswordHasher(iterations=settings.password_hash_iterations)
    accounts = SqlAlchemyAccountStore(session_factory, password_hasher=password_hasher)
    roles = SqlAlchemyRoleStore(session_factory)
    audits = SqlAlchemyAuditRepository(session_factory)

    refresh_tokens = RefreshTokenService(
        tokens=SqlAlchemyRefreshTokenRepository(session_factory),
        accounts=accounts,
        audits=audits,
        token_hasher=Sha256TokenHasher(),
        access_tokens=JwtAccessTokenIssuer(jwt_options, now=now),
        refresh_token_lifetime=jwt_options.refresh_token_lifetime,
        now=now,
    )

    return IdentityServices(
        auth=AuthService(accounts=accounts, refresh_tokens=refresh_tokens, now=now),
        registration=RegistrationService(
            accounts=accounts,
            roles=roles,
            password_hasher=password_hasher,
            refresh_tokens=refresh_tokens,
            default_roles=settings.registration_roles(),
            now=now,
        ),
        role_assignment=RoleAssignmentService(
            accounts=accounts,
            roles=roles,
            audits=audits,
            now=now,
        ),
        refresh_tokens=refresh_tokens,
        token_reaper=TokenReaperService(
            refresh_tokens=refresh_tokens,
            retention=timedelta(days=settings.refresh_token_retention_days),
            interval_seconds=settings.token_reaper_interval_seconds,
        ),
        access_token_validator=JwtAccessTokenValidator(jwt_options, now=now),
        audit_repository=audits,
    )
