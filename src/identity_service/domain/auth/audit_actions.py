"""Audit action and subject enums for security-relevant state transitions."""

from __future__ import annotations

from enum import StrEnum


class AuditAction(StrEnum):
    """Actions recorded in the append-only audit trail."""

    REGISTERED = "registered"
    LOGGED_IN = "logged-in"
    TOKEN_REFRESHED = "token-refreshed"
    TOKEN_REVOKED = "token-revoked"
    ROLES_ASSIGNED = "roles-assigned"
    TOKEN_REUSE_DETECTED = "token-reuse-detected"
    SESSIONS_REVOKED = "sessions-revoked"


class AuditSubject(StrEnum):
    """Kinds of entities an audit entry can point at."""

    ACCOUNT = "Account"
    REFRESH_TOKEN = "RefreshToken"
