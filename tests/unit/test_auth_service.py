from __future__ import annotations

import logging
from datetime import timedelta
from uuid import uuid4

import pytest

from identity_fakes import (
    FakeAccessTokenIssuer,
    FakeAccountStore,
    FakeAuditRepository,
    FakeClock,
    FakeRefreshTokenRepository,
)
from identity_service.application.dto.auth_models import (
    LoginRequest,
    RefreshRequest,
    RevokeRequest,
)
from identity_service.application.services.auth_service import AuthService
from identity_service.application.services.refresh_token_service import RefreshTokenService
from identity_service.domain.auth.audit_actions import AuditSubject
from identity_service.domain.auth.failures import AuthFailure, failure_message
from identity_service.infrastructure.security.token_hasher import Sha256TokenHasher


class _Harness:
    def __init__(self) -> None:
        self.clock = FakeClock()
        self.audits = FakeAuditRepository()
        self.tokens = FakeRefreshTokenRepository(self.audits)
        self.accounts = FakeAccountStore()
        self.refresh_tokens = RefreshTokenService(
            tokens=self.tokens,
            accounts=self.accounts,
            audits=self.audits,
            token_hasher=Sha256TokenHasher(),
            access_tokens=FakeAccessTokenIssuer(self.clock),
            now=self.clock,
        )
        self.service = AuthService(
            accounts=self.accounts,
            refresh_tokens=self.refresh_tokens,
            now=self.clock,
        )


@pytest.mark.asyncio
async def test_login_success_issues_pair_audits_and_sets_last_login() -> None:
    harness = _Harness()
    account = harness.accounts.add_account(roles=["Manager", "Cashier"])

    result = await harness.service.login(
        LoginRequest(email="  Alice@Example.com ", password="Secur3Pass!")
    )

    assert result.success is True
    assert result.message == "Login successful"
    assert result.data is not None
    assert result.data.access_token == "access-1"
    assert result.data.roles == ("Manager", "Cashier")
    assert result.data.refresh_token_expires_at == harness.clock() + timedelta(days=7)
    assert harness.accounts.accounts[account.account_id].last_login_at == harness.clock()
    assert harness.audits.actions() == ["logged-in"]
    entry = harness.audits.entries[0]
    assert entry.subject_type is AuditSubject.ACCOUNT
    assert entry.subject_id == account.account_id
    assert entry.actor_account_id == account.account_id


@pytest.mark.asyncio
async def test_unknown_email_and_wrong_password_are_indistinguishable() -> None:
    harness = _Harness()
    harness.accounts.add_account()

    unknown = await harness.service.login(
        LoginRequest(email="nobody@example.com", password="Secur3Pass!")
    )
    wrong = await harness.service.login(
        LoginRequest(email="alice@example.com", password="WrongPass1")
    )

    assert unknown.error is wrong.error is AuthFailure.INVALID_CREDENTIALS
    assert unknown.message == wrong.message == "Invalid credentials"
    assert harness.tokens.rows == {}
    assert harness.audits.entries == []


@pytest.mark.parametrize(
    ("email", "password"),
    [("", "Secur3Pass!"), ("alice@example.com", "   "), ("not-an-email", "Secur3Pass!")],
)
@pytest.mark.asyncio
async def test_login_with_blank_or_malformed_input_is_invalid_credentials(
    email: str,
    password: str,
) -> None:
    harness = _Harness()
    harness.accounts.add_account()

    result = await harness.service.login(LoginRequest(email=email, password=password))

    assert result.success is False
    assert result.error is AuthFailure.INVALID_CREDENTIALS


@pytest.mark.asyncio
async def test_login_inactive_account_is_rejected_before_password_check() -> None:
    harness = _Harness()
    harness.accounts.add_account(is_active=False)

    result = await harness.service.login(
        LoginRequest(email="alice@example.com", password="WrongPass1")
    )

    assert result.error is AuthFailure.ACCOUNT_INACTIVE
    assert result.message == failure_message(AuthFailure.ACCOUNT_INACTIVE)


@pytest.mark.asyncio
async def test_login_locked_account_with_correct_password_is_locked() -> None:
    harness = _Harness()
    harness.accounts.add_account(lockout_end=harness.clock() + timedelta(minutes=10))

    result = await harness.service.login(
        LoginRequest(email="alice@example.com", password="Secur3Pass!")
    )

    assert result.error is AuthFailure.ACCOUNT_LOCKED
    assert harness.tokens.rows == {}


@pytest.mark.asyncio
async def test_login_after_lockout_window_succeeds() -> None:
    harness = _Harness()
    harness.accounts.add_account(lockout_end=harness.clock() - timedelta(seconds=1))

    result = await harness.service.login(
        LoginRequest(email="alice@example.com", password="Secur3Pass!")
    )

    assert result.success is True


@pytest.mark.asyncio
async def test_login_storage_failure_returns_generic_message() -> None:
    harness = _Harness()
    harness.accounts.add_account()
    harness.tokens.fail_on.add("create_token")

    result = await harness.service.login(
        LoginRequest(email="alice@example.com", password="Secur3Pass!")
    )

    assert result.error is AuthFailure.STORAGE_ERROR
    assert result.message == "An unexpected error occurred. Please try again later."


@pytest.mark.asyncio
async def test_refresh_rotates_and_replay_is_rejected() -> None:
    harness = _Harness()
    harness.accounts.add_account()
    login = await harness.service.login(
        LoginRequest(email="alice@example.com", password="Secur3Pass!")
    )
    assert login.data is not None
    old_refresh_token = login.data.refresh_token

    refreshed = await harness.service.refresh(RefreshRequest(refresh_token=old_refresh_token))
    replay = await harness.service.refresh(RefreshRequest(refresh_token=old_refresh_token))

    assert refreshed.success is True
    assert refreshed.message == "Token refreshed successfully"
    assert refreshed.data is not None
    assert refreshed.data.refresh_token != old_refresh_token
    assert replay.error is AuthFailure.REVOKED_TOKEN_REUSE
    assert all(row.is_revoked for row in harness.tokens.rows.values())
    assert harness.audits.actions() == ["logged-in", "token-refreshed", "token-reuse-detected"]

    after_reuse = await harness.service.refresh(
        RefreshRequest(refresh_token=refreshed.data.refresh_token)
    )
    assert after_reuse.error is AuthFailure.REVOKED_TOKEN_REUSE


@pytest.mark.asyncio
async def test_refresh_blank_token_is_validation_error() -> None:
    harness = _Harness()

    result = await harness.service.refresh(RefreshRequest(refresh_token="  "))

    assert result.error is AuthFailure.VALIDATION_ERROR
    assert result.message == "Refresh token is required"


@pytest.mark.asyncio
async def test_refresh_unknown_and_expired_tokens_map_to_failures() -> None:
    harness = _Harness()
    harness.accounts.add_account()
    login = await harness.service.login(
        LoginRequest(email="alice@example.com", password="Secur3Pass!")
    )
    assert login.data is not None
    harness.clock.advance(timedelta(days=8))

    unknown = await harness.service.refresh(RefreshRequest(refresh_token="bogus"))
    expired = await harness.service.refresh(
        RefreshRequest(refresh_token=login.data.refresh_token)
    )

    assert unknown.error is AuthFailure.INVALID_TOKEN
    assert expired.error is AuthFailure.TOKEN_EXPIRED


@pytest.mark.asyncio
async def test_revoke_succeeds_for_revoked_already_revoked_and_unknown_tokens() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    login = await harness.service.login(
        LoginRequest(email="alice@example.com", password="Secur3Pass!")
    )
    assert login.data is not None
    request = RevokeRequest(
        refresh_token=login.data.refresh_token,
        actor_account_id=account.account_id,
    )

    first = await harness.service.revoke(request)
    second = await harness.service.revoke(request)
    unknown = await harness.service.revoke(RevokeRequest(refresh_token="bogus"))

    assert [first.success, second.success, unknown.success] == [True, True, True]
    assert len({first.message, second.message, unknown.message}) == 3
    assert first.message == "Token revoked successfully"
    assert second.message == "Token already revoked"
    assert harness.audits.actions() == ["logged-in", "token-revoked", "token-revoked"]
    assert harness.audits.entries[1].actor_account_id == account.account_id

    refresh = await harness.service.refresh(
        RefreshRequest(refresh_token=login.data.refresh_token)
    )
    assert refresh.error is AuthFailure.REVOKED_TOKEN_REUSE


@pytest.mark.asyncio
async def test_revoke_blank_token_is_validation_error() -> None:
    harness = _Harness()

    result = await harness.service.revoke(RevokeRequest(refresh_token=""))

    assert result.error is AuthFailure.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_revoke_all_sessions_revokes_every_device() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    for _ in range(3):
        await harness.service.login(
            LoginRequest(email="alice@example.com", password="Secur3Pass!")
        )

    result = await harness.service.revoke_all_sessions(account_id=account.account_id)

    assert result.success is True
    assert result.data == 3
    assert all(row.is_revoked for row in harness.tokens.rows.values())
    assert harness.audits.actions()[-1] == "sessions-revoked"


@pytest.mark.asyncio
async def test_revoke_all_sessions_unknown_account_is_not_found() -> None:
    harness = _Harness()

    result = await harness.service.revoke_all_sessions(account_id=uuid4())

    assert result.error is AuthFailure.NOT_FOUND


@pytest.mark.asyncio
async def test_last_login_failure_still_returns_issued_tokens(
    caplog: pytest.LogCaptureFixture,
) -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    harness.accounts.fail_on.add("set_last_login")

    with caplog.at_level(logging.ERROR):
        result = await harness.service.login(
            LoginRequest(email="alice@example.com", password="Secur3Pass!")
        )

    assert result.success is True
    assert result.data is not None
    assert len(harness.tokens.rows) == 1
    assert harness.audits.actions() == ["logged-in"]
    assert harness.accounts.accounts[account.account_id].last_login_at is None
    assert any("last_login_update_failed" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_unencodable_input_yields_typed_failures() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    login = await harness.service.login(
        LoginRequest(email="alice@example.com", password="Secur3Pass!")
    )
    assert login.success is True

    bad_email = await harness.service.login(
        LoginRequest(email="alice\ud800@example.com", password="Secur3Pass!")
    )
    bad_password = await harness.service.login(
        LoginRequest(email="alice@example.com", password="Secur3Pass\ud800")
    )
    refresh = await harness.service.refresh(RefreshRequest(refresh_token="abc\ud800def"))
    revoke = await harness.service.revoke(
        RevokeRequest(refresh_token="abc\ud800def", actor_account_id=account.account_id)
    )

    assert bad_email.error is AuthFailure.INVALID_CREDENTIALS
    assert bad_password.error is AuthFailure.INVALID_CREDENTIALS
    assert refresh.error is AuthFailure.INVALID_TOKEN
    assert revoke.success is True
    assert revoke.message == "Token not found; nothing to revoke"
    assert harness.audits.actions() == ["logged-in"]
