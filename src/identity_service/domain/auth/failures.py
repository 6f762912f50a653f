"""Failure taxonomy returned by identity use cases.

Every failure kind maps to exactly one caller-facing message. Authentication
failures are deliberately generic: they never reveal whether an email is
registered or whether a refresh token was unknown, expired, or replayed beyond
what the caller needs to decide on its next step. Only ``VALIDATION_ERROR``
results carry a specific message, because it describes the caller's own input.
"""

from __future__ import annotations

from enum import StrEnum


class AuthFailure(StrEnum):
    """Typed failure kinds surfaced by identity use cases."""

    VALIDATION_ERROR = "validation_error"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_TOKEN = "invalid_token"
    REVOKED_TOKEN_REUSE = "revoked_token_reuse"
    TOKEN_EXPIRED = "token_expired"
    ACCOUNT_INACTIVE = "account_inactive"
    ACCOUNT_LOCKED = "account_locked"
    DUPLICATE_ACCOUNT = "duplicate_account"
    NOT_FOUND = "not_found"
    STORAGE_ERROR = "storage_error"


FAILURE_MESSAGES: dict[AuthFailure, str] = {
    AuthFailure.VALIDATION_ERROR: "Request validation failed",
    AuthFailure.INVALID_CREDENTIALS: "Invalid credentials",
    AuthFailure.INVALID_TOKEN: "Invalid refresh token",
    AuthFailure.REVOKED_TOKEN_REUSE: "Refresh token is no longer valid. Please log in again.",
    AuthFailure.TOKEN_EXPIRED: "Refresh token has expired. Please log in again.",
    AuthFailure.ACCOUNT_INACTIVE: "Account is inactive",
    AuthFailure.ACCOUNT_LOCKED: "Account is locked. Please try again later.",
    AuthFailure.DUPLICATE_ACCOUNT: "Email already registered",
    AuthFailure.NOT_FOUND: "Account not found",
    AuthFailure.STORAGE_ERROR: "An unexpected error occurred. Please try again later.",
}


def failure_message(failure: AuthFailure) -> str:
    """Return the documented caller-facing message for one failure kind."""

    return FAILURE_MESSAGES[failure]
