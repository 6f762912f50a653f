from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import jwt
import pytest

from identity_fakes import BASE_TIME, FakeClock
from identity_service.application.ports.account_store_port import AccountRecord
from identity_service.config.errors import ConfigurationError
from identity_service.config.jwt_options import JwtOptions
from identity_service.infrastructure.security.jwt_tokens import (
    JwtAccessTokenIssuer,
    JwtAccessTokenValidator,
)

SIGNING_KEY = "k" * 32
OPTIONS = JwtOptions(issuer="identity", audience="pos-clients", signing_key=SIGNING_KEY)


def _account(*, roles: tuple[str, ...] = ("Manager", "Cashier")) -> AccountRecord:
    return AccountRecord(
        account_id=uuid4(),
        email="alice@example.com",
        first_name="Alice",
        last_name="Smith",
        phone_number=None,
        is_active=True,
        roles=roles,
        lockout_end=None,
        last_login_at=None,
        created_at=BASE_TIME,
    )


def test_issued_token_carries_identity_claims_and_validates() -> None:
    clock = FakeClock()
    account = _account()
    issued = JwtAccessTokenIssuer(OPTIONS, now=clock).issue(account)

    claims = JwtAccessTokenValidator(OPTIONS, now=clock).validate(issued.token)

    assert claims is not None
    assert claims.subject == account.account_id
    assert claims.email == "alice@example.com"
    assert claims.given_name == "Alice"
    assert claims.family_name == "Smith"
    assert claims.roles == ("Manager", "Cashier")
    assert claims.token_id == issued.token_id
    assert claims.expires_at == BASE_TIME + timedelta(minutes=15)
    assert issued.expires_at == claims.expires_at

    header = jwt.get_unverified_header(issued.token)
    assert header["alg"] == "HS256"


def test_each_issued_token_has_unique_jti() -> None:
    issuer = JwtAccessTokenIssuer(OPTIONS, now=FakeClock())
    account = _account()

    assert issuer.issue(account).token_id != issuer.issue(account).token_id


def test_token_is_rejected_from_the_exact_expiry_instant() -> None:
    clock = FakeClock()
    issued = JwtAccessTokenIssuer(OPTIONS, now=clock).issue(_account())
    validator = JwtAccessTokenValidator(OPTIONS, now=clock)

    clock.advance(timedelta(minutes=15) - timedelta(seconds=1))
    assert validator.validate(issued.token) is not None
    assert validator.is_expired(issued.token) is False

    clock.advance(timedelta(seconds=1))
    assert validator.validate(issued.token) is None
    assert validator.is_expired(issued.token) is True


@pytest.mark.parametrize(
    "options",
    [
        JwtOptions(issuer="other", audience="pos-clients", signing_key=SIGNING_KEY),
        JwtOptions(issuer="identity", audience="other", signing_key=SIGNING_KEY),
        JwtOptions(issuer="identity", audience="pos-clients", signing_key="z" * 32),
    ],
)
def test_issuer_audience_and_key_mismatches_are_rejected(options: JwtOptions) -> None:
    clock = FakeClock()
    issued = JwtAccessTokenIssuer(OPTIONS, now=clock).issue(_account())

    assert JwtAccessTokenValidator(options, now=clock).validate(issued.token) is None


def test_non_hs256_algorithms_are_rejected() -> None:
    clock = FakeClock()
    payload = {
        "sub": str(uuid4()),
        "jti": str(uuid4()),
        "iss": "identity",
        "aud": "pos-clients",
        "iat": int(BASE_TIME.timestamp()),
        "exp": int((BASE_TIME + timedelta(minutes=5)).timestamp()),
    }
    hs512 = jwt.encode(payload, SIGNING_KEY * 2, algorithm="HS512")
    unsigned = jwt.encode(payload, None, algorithm="none")
    validator = JwtAccessTokenValidator(
        JwtOptions(issuer="identity", audience="pos-clients", signing_key=SIGNING_KEY * 2),
        now=clock,
    )

    assert validator.validate(hs512) is None
    assert validator.validate(unsigned) is None


def test_missing_required_claims_are_rejected() -> None:
    clock = FakeClock()
    token = jwt.encode(
        {
            "sub": str(uuid4()),
            "iss": "identity",
            "aud": "pos-clients",
            "iat": int(BASE_TIME.timestamp()),
            "exp": int((BASE_TIME + timedelta(minutes=5)).timestamp()),
        },
        SIGNING_KEY,
        algorithm="HS256",
    )

    assert JwtAccessTokenValidator(OPTIONS, now=clock).validate(token) is None


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_tokens_are_invalid_and_count_as_expired(token: str) -> None:
    validator = JwtAccessTokenValidator(OPTIONS, now=FakeClock())

    assert validator.validate(token) is None
    assert validator.is_expired(token) is True


@pytest.mark.parametrize(
    "options",
    [
        JwtOptions(issuer="", audience="pos-clients", signing_key=SIGNING_KEY),
        JwtOptions(issuer="identity", audience=" ", signing_key=SIGNING_KEY),
        JwtOptions(issuer="identity", audience="pos-clients", signing_key=""),
        JwtOptions(issuer="identity", audience="pos-clients", signing_key="k" * 31),
    ],
)
def test_weak_or_missing_configuration_fails_at_construction(options: JwtOptions) -> None:
    with pytest.raises(ConfigurationError):
        JwtAccessTokenIssuer(options)
    with pytest.raises(ConfigurationError):
        JwtAccessTokenValidator(options)
