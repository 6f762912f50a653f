"""Immutable signing configuration shared by access-token issuer and validator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from identity_service.config.errors import ConfigurationError

MIN_SIGNING_KEY_LENGTH = 32


@dataclass(frozen=True)
class JwtOptions:
    """Issuer, audience, signing key, and token lifetimes for one deployment."""

    issuer: str
    audience: str
    signing_key: str
    access_token_lifetime_minutes: int = 15
    refresh_token_lifetime_days: int = 7

    @property
    def access_token_lifetime(self) -> timedelta:
        return timedelta(minutes=self.access_token_lifetime_minutes)

    @property
    def refresh_token_lifetime(self) -> timedelta:
        return timedelta(days=self.refresh_token_lifetime_days)

    def validate(self) -> JwtOptions:
        """Raise ConfigurationError unless every required value is present and strong."""

        if not self.issuer.strip():
            raise ConfigurationError("JWT issuer is not configured")
        if not self.audience.strip():
            raise ConfigurationError("JWT audience is not configured")
        if not self.signing_key.strip():
            raise ConfigurationError("JWT signing key is not configured")
        if len(self.signing_key) < MIN_SIGNING_KEY_LENGTH:
            raise ConfigurationError(
                f"JWT signing key must be at least {MIN_SIGNING_KEY_LENGTH} characters long"
            )
        if self.access_token_lifetime_minutes <= 0:
            raise ConfigurationError("access token lifetime must be positive")
        if self.refresh_token_lifetime_days <= 0:
            raise ConfigurationError("refresh token lifetime must be positive")
        return self
