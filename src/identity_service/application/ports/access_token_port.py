"""Ports for issuing and validating signed access tokens."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from identity_service.application.ports.account_store_port import AccountRecord


@dataclass(frozen=True)
class IssuedAccessToken:
    """Signed access token plus its identifier and expiry."""

    token: str
    token_id: UUID
    expires_at: datetime


@dataclass(frozen=True)
class AccessTokenClaims:
    """Claims extracted from a validated access token."""

    subject: UUID
    email: str
    given_name: str
    family_name: str
    token_id: UUID
    roles: tuple[str, ...]
    issued_at: datetime
    expires_at: datetime


class AccessTokenIssuerPort(Protocol):
    """Access-token issuing contract."""

    def issue(self, account: AccountRecord) -> IssuedAccessToken:
        """Build and sign one access token for the account."""


class AccessTokenValidatorPort(Protocol):
    """Access-token validation contract."""

    def validate(self, token: str) -> AccessTokenClaims | None:
        """Return claims for a valid token, or None."""

    def is_expired(self, token: str) -> bool:
        """Report expiry without verifying the signature."""
