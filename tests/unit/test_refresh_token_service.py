from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import pytest

from identity_fakes import (
    FakeAccessTokenIssuer,
    FakeAccountStore,
    FakeAuditRepository,
    FakeClock,
    FakeRefreshTokenRepository,
)
from identity_service.application.ports.audit_repository_port import AuditDraft
from identity_service.application.services.refresh_token_service import (
    RefreshTokenService,
    RevocationOutcome,
    RotationOutcome,
)
from identity_service.domain.auth.audit_actions import AuditAction, AuditSubject
from identity_service.infrastructure.security.token_hasher import Sha256TokenHasher


class _Harness:
    def __init__(self) -> None:
        self.clock = FakeClock()
        self.audits = FakeAuditRepository()
        self.tokens = FakeRefreshTokenRepository(self.audits)
        self.accounts = FakeAccountStore()
        self.access_tokens = FakeAccessTokenIssuer(self.clock)
        self.hasher = Sha256TokenHasher()
        self.service = RefreshTokenService(
            tokens=self.tokens,
            accounts=self.accounts,
            audits=self.audits,
            token_hasher=self.hasher,
            access_tokens=self.access_tokens,
            now=self.clock,
        )


def _refresh_draft() -> AuditDraft:
    return AuditDraft(action=AuditAction.TOKEN_REFRESHED, detail="refreshed")


@pytest.mark.asyncio
async def test_issue_persists_digest_only_and_defaults_to_seven_days() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()

    issued = await harness.service.issue(account_id=account.account_id)

    stored = harness.tokens.rows[issued.record.token_id]
    assert stored.token_digest == harness.hasher.digest(issued.secret)
    assert stored.token_digest != issued.secret
    assert all(issued.secret not in row.token_digest for row in harness.tokens.rows.values())
    assert stored.expires_at - stored.issued_at == timedelta(days=7)
    assert stored.is_valid(now=harness.clock())
    assert issued.secret not in repr(issued)


@pytest.mark.asyncio
async def test_issue_generates_distinct_high_entropy_secrets() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()

    secrets = {
        (await harness.service.issue(account_id=account.account_id)).secret for _ in range(20)
    }

    assert len(secrets) == 20
    assert all(len(secret) >= 43 for secret in secrets)


@pytest.mark.asyncio
async def test_rotate_valid_token_revokes_predecessor_and_links_successor() -> None:
    harness = _Harness()
    account = harness.accounts.add_account(roles=["Cashier"])
    issued = await harness.service.issue(account_id=account.account_id)
    harness.clock.advance(timedelta(minutes=5))

    result = await harness.service.rotate(secret=issued.secret, audit=_refresh_draft())

    assert result.outcome is RotationOutcome.ROTATED
    assert result.pair is not None
    new_secret = result.pair.refresh.secret
    assert new_secret != issued.secret
    predecessor = harness.tokens.rows[issued.record.token_id]
    assert predecessor.revoked_at == harness.clock()
    assert predecessor.replaced_by_digest == harness.hasher.digest(new_secret)
    successor = harness.tokens.rows[result.pair.refresh.record.token_id]
    assert successor.is_valid(now=harness.clock())
    assert harness.access_tokens.issued_for == [account.account_id]
    assert harness.audits.actions() == ["token-refreshed"]
    assert harness.audits.entries[0].subject_id == issued.record.token_id


@pytest.mark.asyncio
async def test_rotate_unknown_or_blank_secret_is_invalid_token() -> None:
    harness = _Harness()

    unknown = await harness.service.rotate(secret="not-a-real-token")
    blank = await harness.service.rotate(secret="   ")

    assert unknown.outcome is RotationOutcome.INVALID_TOKEN
    assert blank.outcome is RotationOutcome.INVALID_TOKEN
    assert harness.audits.entries == []


@pytest.mark.asyncio
async def test_rotate_expired_token_leaves_row_untouched() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    issued = await harness.service.issue(account_id=account.account_id)
    harness.clock.advance(timedelta(days=7, seconds=1))

    result = await harness.service.rotate(secret=issued.secret)

    assert result.outcome is RotationOutcome.TOKEN_EXPIRED
    assert harness.tokens.rows[issued.record.token_id] == issued.record
    assert len(harness.tokens.rows) == 1


@pytest.mark.asyncio
async def test_token_is_still_valid_at_exact_expiry_instant() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    issued = await harness.service.issue(account_id=account.account_id)
    harness.clock.advance(timedelta(days=7))

    result = await harness.service.rotate(secret=issued.secret)

    assert result.outcome is RotationOutcome.ROTATED


@pytest.mark.asyncio
async def test_replaying_rotated_token_revokes_whole_family() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    other_account = harness.accounts.add_account(email="bob@example.com")
    first = await harness.service.issue(account_id=account.account_id)
    other_device = await harness.service.issue(account_id=account.account_id)
    unrelated = await harness.service.issue(account_id=other_account.account_id)
    rotated = await harness.service.rotate(secret=first.secret)
    assert rotated.pair is not None

    replay = await harness.service.rotate(secret=first.secret)

    assert replay.outcome is RotationOutcome.REVOKED_TOKEN_REUSE
    assert harness.tokens.rows[rotated.pair.refresh.record.token_id].is_revoked
    assert harness.tokens.rows[other_device.record.token_id].is_revoked
    assert not harness.tokens.rows[unrelated.record.token_id].is_revoked
    assert harness.audits.actions() == ["token-reuse-detected"]
    reuse_entry = harness.audits.entries[0]
    assert reuse_entry.subject_type is AuditSubject.ACCOUNT
    assert reuse_entry.subject_id == account.account_id


@pytest.mark.asyncio
async def test_reuse_detection_logs_warning_without_secret(
    caplog: pytest.LogCaptureFixture,
) -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    issued = await harness.service.issue(account_id=account.account_id)
    await harness.service.revoke(secret=issued.secret)

    with caplog.at_level(logging.INFO):
        await harness.service.rotate(secret=issued.secret)

    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert any("refresh_token_reuse_detected" in record.getMessage() for record in warnings)
    digest = harness.hasher.digest(issued.secret)
    assert all(issued.secret not in record.getMessage() for record in caplog.records)
    assert all(digest not in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_rotate_for_inactive_account_fails_without_rotating() -> None:
    harness = _Harness()
    account = harness.accounts.add_account(is_active=False)
    issued = await harness.service.issue(account_id=account.account_id)

    result = await harness.service.rotate(secret=issued.secret)

    assert result.outcome is RotationOutcome.ACCOUNT_INACTIVE
    assert not harness.tokens.rows[issued.record.token_id].is_revoked


@pytest.mark.asyncio
async def test_rotate_for_missing_account_is_invalid_token() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    issued = await harness.service.issue(account_id=account.account_id)
    del harness.accounts.accounts[account.account_id]

    result = await harness.service.rotate(secret=issued.secret)

    assert result.outcome is RotationOutcome.INVALID_TOKEN


@pytest.mark.asyncio
async def test_losing_a_rotation_race_takes_the_reuse_path() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    issued = await harness.service.issue(account_id=account.account_id)

    async def revoke_first() -> None:
        harness.tokens.before_rotate = None
        await harness.tokens.revoke_token(
            token_id=issued.record.token_id,
            revoked_at=harness.clock(),
        )

    harness.tokens.before_rotate = revoke_first

    result = await harness.service.rotate(secret=issued.secret, audit=_refresh_draft())

    assert result.outcome is RotationOutcome.REVOKED_TOKEN_REUSE
    assert len(harness.tokens.rows) == 1
    assert harness.audits.actions() == ["token-reuse-detected"]


@pytest.mark.asyncio
async def test_concurrent_rotations_of_same_token_have_exactly_one_winner() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    issued = await harness.service.issue(account_id=account.account_id)

    first, second = await asyncio.gather(
        harness.service.rotate(secret=issued.secret),
        harness.service.rotate(secret=issued.secret),
    )

    outcomes = sorted([first.outcome, second.outcome])
    assert outcomes == sorted([RotationOutcome.ROTATED, RotationOutcome.REVOKED_TOKEN_REUSE])
    winner = first if first.outcome is RotationOutcome.ROTATED else second
    assert winner.pair is not None
    assert harness.tokens.rows[winner.pair.refresh.record.token_id].is_revoked


@pytest.mark.asyncio
async def test_revoke_reports_revoked_then_already_revoked_and_audits_both() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    issued = await harness.service.issue(account_id=account.account_id)
    draft = AuditDraft(action=AuditAction.TOKEN_REVOKED, detail="revoked")

    first = await harness.service.revoke(secret=issued.secret, audit=draft)
    revoked_at = harness.tokens.rows[issued.record.token_id].revoked_at
    harness.clock.advance(timedelta(minutes=1))
    second = await harness.service.revoke(secret=issued.secret, audit=draft)

    assert first.outcome is RevocationOutcome.REVOKED
    assert second.outcome is RevocationOutcome.ALREADY_REVOKED
    assert harness.tokens.rows[issued.record.token_id].revoked_at == revoked_at
    assert harness.audits.actions() == ["token-revoked", "token-revoked"]


@pytest.mark.asyncio
async def test_revoke_unknown_token_is_not_found_without_audit() -> None:
    harness = _Harness()

    result = await harness.service.revoke(
        secret="unknown",
        audit=AuditDraft(action=AuditAction.TOKEN_REVOKED, detail="revoked"),
    )

    assert result.outcome is RevocationOutcome.NOT_FOUND
    assert harness.audits.entries == []


@pytest.mark.asyncio
async def test_revoke_all_counts_only_newly_revoked_tokens() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    tokens = [await harness.service.issue(account_id=account.account_id) for _ in range(3)]
    await harness.service.revoke(secret=tokens[0].secret)

    count = await harness.service.revoke_all(account_id=account.account_id)
    again = await harness.service.revoke_all(account_id=account.account_id)

    assert count == 2
    assert again == 0
    assert all(row.is_revoked for row in harness.tokens.rows.values())


@pytest.mark.asyncio
async def test_purge_removes_only_revoked_tokens_expired_before_retention() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    old_revoked = await harness.service.issue(account_id=account.account_id)
    old_active = await harness.service.issue(account_id=account.account_id)
    await harness.service.revoke(secret=old_revoked.secret)
    harness.clock.advance(timedelta(days=40))
    fresh_revoked = await harness.service.issue(account_id=account.account_id)
    await harness.service.revoke(secret=fresh_revoked.secret)

    purged = await harness.service.purge(retention=timedelta(days=30))

    assert purged == 1
    assert old_revoked.record.token_id not in harness.tokens.rows
    assert old_active.record.token_id in harness.tokens.rows
    assert fresh_revoked.record.token_id in harness.tokens.rows


@pytest.mark.asyncio
async def test_issue_honours_an_explicit_zero_lifetime() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()

    issued = await harness.service.issue(account_id=account.account_id, lifetime=timedelta(0))

    assert issued.record.expires_at == issued.record.issued_at == harness.clock()
    harness.clock.advance(timedelta(seconds=1))
    assert issued.record.is_expired(now=harness.clock())


@pytest.mark.asyncio
async def test_unencodable_secret_is_treated_as_unknown_token() -> None:
    harness = _Harness()
    account = harness.accounts.add_account()
    await harness.service.issue(account_id=account.account_id)

    rotation = await harness.service.rotate(secret="abc\ud800def", audit=_refresh_draft())
    revocation = await harness.service.revoke(
        secret="abc\ud800def",
        audit=AuditDraft(action=AuditAction.TOKEN_REVOKED, detail="revoked"),
    )

    assert rotation.outcome is RotationOutcome.INVALID_TOKEN
    assert revocation.outcome is RevocationOutcome.NOT_FOUND
    assert all(not row.is_revoked for row in harness.tokens.rows.values())
    assert harness.audits.entries == []
