"""HS256 JWT access-token issuer and validator built on PyJWT."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import jwt
from jwt.exceptions import InvalidTokenError

from identity_service.application.ports.access_token_port import (
    AccessTokenClaims,
    AccessTokenIssuerPort,
    AccessTokenValidatorPort,
    IssuedAccessToken,
)
from identity_service.application.ports.account_store_port import AccountRecord
from identity_service.config.jwt_options import JwtOptions

logger = logging.getLogger(__name__)

NowCallable = Callable[[], datetime]

ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["sub", "jti", "iss", "aud", "iat", "exp"]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class JwtAccessTokenIssuer(AccessTokenIssuerPort):
    """Sign short-lived access tokens carrying identity and role claims."""

    def __init__(self, options: JwtOptions, *, now: NowCallable = _utc_now) -> None:
        self._options = options.validate()
        self._now = now

    def issue(self, account: AccountRecord) -> IssuedAccessToken:
        issued_at = self._now().replace(microsecond=0)
        expires_at = issued_at + self._options.access_token_lifetime
        token_id = uuid4()

        payload: dict[str, Any] = {
            "sub": str(account.account_id),
            "email": account.email,
            "given_name": account.first_name,
            "family_name": account.last_name,
            "jti": str(token_id),
            "roles": list(account.roles),
            "iss": self._options.issuer,
            "aud": self._options.audience,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._options.signing_key, algorithm=ALGORITHM)
        return IssuedAccessToken(token=token, token_id=token_id, expires_at=expires_at)


class JwtAccessTokenValidator(AccessTokenValidatorPort):
    """Verify access tokens with zero clock skew against the injected clock.

    Tokens whose header names any algorithm other than HS256 are rejected
    before signature verification.
    """

    def __init__(self, options: JwtOptions, *, now: NowCallable = _utc_now) -> None:
        self._options = options.validate()
        self._now = now

    def validate(self, token: str) -> AccessTokenClaims | None:
        if not token or not token.strip():
            return None

        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") != ALGORITHM:
                logger.info("access_token_rejected reason=algorithm")
                return None
            payload = jwt.decode(
                token,
                self._options.signing_key,
                algorithms=[ALGORITHM],
                audience=self._options.audience,
                issuer=self._options.issuer,
                options={
                    "require": _REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except InvalidTokenError as exc:
            logger.info("access_token_rejected reason=%s", type(exc).__name__)
            return None

        try:
            claims = _to_claims(payload)
        except (KeyError, TypeError, ValueError):
            logger.info("access_token_rejected reason=malformed_claims")
            return None

        if self._now() >= claims.expires_at:
            return None
        return claims

    def is_expired(self, token: str) -> bool:
        """Read ``exp`` without verifying the signature; malformed tokens count as expired.

        Diagnostic use only. Never treat the result as proof of authenticity.
        """

        try:
            payload = jwt.decode(token, options={"verify_signature": False})
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
        except (InvalidTokenError, KeyError, TypeError, ValueError, OverflowError):
            return True
        return self._now() >= expires_at


def _to_claims(payload: dict[str, Any]) -> AccessTokenClaims:
    raw_roles = payload.get("roles", [])
    roles = (raw_roles,) if isinstance(raw_roles, str) else tuple(str(role) for role in raw_roles)
    return AccessTokenClaims(
        subject=UUID(str(payload["sub"])),
        email=str(payload.get("email", "")),
        given_name=str(payload.get("given_name", "")),
        family_name=str(payload.get("family_name", "")),
        token_id=UUID(str(payload["jti"])),
        roles=roles,
        issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=UTC),
        expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
    )
