"""Request and result models for identity use cases."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from identity_service.application.ports.access_token_port import IssuedAccessToken
from identity_service.application.ports.refresh_token_repository_port import RefreshTokenRecord
from identity_service.domain.auth.failures import AuthFailure, failure_message

T = TypeVar("T")


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class RegisterRequest(StrictModel):
    """Self-service registration payload."""

    email: str
    first_name: str
    last_name: str
    password: str
    phone_number: str | None = None
    roles: list[str] | None = None


class LoginRequest(StrictModel):
    email: str
    password: str


class RefreshRequest(StrictModel):
    refresh_token: str


class RevokeRequest(StrictModel):
    refresh_token: str
    actor_account_id: UUID | None = None


class AssignRolesRequest(StrictModel):
    """Desired full role set for one account."""

    account_id: UUID
    roles: list[str]
    actor_account_id: UUID | None = None


@dataclass(frozen=True)
class IssuedRefreshToken:
    """Plaintext secret returned exactly once, plus the persisted record."""

    secret: str
    record: RefreshTokenRecord

    def __repr__(self) -> str:
        return f"IssuedRefreshToken(token_id={self.record.token_id!s}, secret=<redacted>)"


@dataclass(frozen=True)
class IssuedTokenPair:
    access: IssuedAccessToken
    refresh: IssuedRefreshToken


@dataclass(frozen=True)
class AuthTokens:
    """Token pair shape handed back to callers."""

    access_token: str
    access_token_expires_at: datetime
    refresh_token: str
    refresh_token_expires_at: datetime
    account_id: UUID
    email: str
    roles: tuple[str, ...]

    @classmethod
    def from_pair(
        cls,
        pair: IssuedTokenPair,
        *,
        email: str,
        roles: tuple[str, ...],
    ) -> AuthTokens:
        return cls(
            access_token=pair.access.token,
            access_token_expires_at=pair.access.expires_at,
            refresh_token=pair.refresh.secret,
            refresh_token_expires_at=pair.refresh.record.expires_at,
            account_id=pair.refresh.record.account_id,
            email=email,
            roles=roles,
        )

    def __repr__(self) -> str:
        return (
            f"AuthTokens(account_id={self.account_id!s}, email={self.email!r}, "
            "access_token=<redacted>, refresh_token=<redacted>)"
        )


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Uniform use-case result: success flag, message, optional data and failure kind."""

    success: bool
    message: str
    data: T | None = None
    error: AuthFailure | None = None

    @classmethod
    def succeeded(cls, message: str, data: T | None = None) -> OperationResult[T]:
        return cls(success=True, message=message, data=data)

    @classmethod
    def failed(
        cls,
        error: AuthFailure,
        message: str | None = None,
    ) -> OperationResult[T]:
        """Build a failure carrying the documented message unless one is supplied."""

        return cls(
            success=False,
            message=message if message is not None else failure_message(error),
            error=error,
        )
