"""Normalization and policy checks for account credential inputs."""

from __future__ import annotations

import re

MAX_EMAIL_LENGTH = 254
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
MAX_NAME_LENGTH = 100
MAX_ROLE_NAME_LENGTH = 100

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
_PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")


class CredentialValidationError(ValueError):
    """Raised when one credential input violates normalization or policy rules."""


def is_utf8_encodable(value: str) -> bool:
    """Return False for strings carrying lone surrogates, which cannot be stored or hashed."""

    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def normalize_account_email(*, email: str) -> str:
    """Normalize one account email and reject blank, oversized, or malformed values."""

    normalized = email.strip().lower()
    if not normalized:
        raise CredentialValidationError("Email is required")
    if len(normalized) > MAX_EMAIL_LENGTH:
        raise CredentialValidationError(f"Email cannot exceed {MAX_EMAIL_LENGTH} characters")
    if _EMAIL_PATTERN.match(normalized) is None or not is_utf8_encodable(normalized):
        raise CredentialValidationError("Email format is invalid")
    return normalized


def normalize_person_name(*, value: str, field_label: str) -> str:
    """Normalize a given/family name and reject blank or non-alphabetic values."""

    normalized = value.strip()
    if not normalized:
        raise CredentialValidationError(f"{field_label} is required")
    if len(normalized) > MAX_NAME_LENGTH:
        raise CredentialValidationError(
            f"{field_label} cannot exceed {MAX_NAME_LENGTH} characters"
        )
    if _NAME_PATTERN.match(normalized) is None:
        raise CredentialValidationError(f"{field_label} contains invalid characters")
    return normalized


def normalize_phone_number(*, phone_number: str | None) -> str | None:
    """Return an E.164-style phone number, or None when the input is blank."""

    if phone_number is None or not phone_number.strip():
        return None
    normalized = phone_number.strip()
    if _PHONE_PATTERN.match(normalized) is None:
        raise CredentialValidationError("Phone number format is invalid")
    return normalized


def check_password_length(*, password: str) -> None:
    """Reject blank passwords and passwords outside the accepted length window."""

    if not password.strip():
        raise CredentialValidationError("Password is required")
    if not is_utf8_encodable(password):
        raise CredentialValidationError("Password contains invalid characters")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise CredentialValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if len(password) > MAX_PASSWORD_LENGTH:
        raise CredentialValidationError(
            f"Password cannot exceed {MAX_PASSWORD_LENGTH} characters"
        )


def check_password_policy(*, password: str) -> None:
    """Apply the registration password policy on top of the length window."""

    check_password_length(password=password)
    if not any(char.isupper() for char in password):
        raise CredentialValidationError("Password must contain at least one uppercase letter")
    if not any(char.islower() for char in password):
        raise CredentialValidationError("Password must contain at least one lowercase letter")
    if not any(char.isdigit() for char in password):
        raise CredentialValidationError("Password must contain at least one digit")


def normalize_role_names(*, role_names: list[str] | tuple[str, ...]) -> list[str]:
    """Strip role names, drop duplicates while keeping order, and reject blanks."""

    if not role_names:
        raise CredentialValidationError("At least one role must be specified")

    normalized: list[str] = []
    for role_name in role_names:
        stripped = role_name.strip()
        if not stripped:
            raise CredentialValidationError("Role name cannot be empty")
        if len(stripped) > MAX_ROLE_NAME_LENGTH:
            raise CredentialValidationError(
                f"Role name cannot exceed {MAX_ROLE_NAME_LENGTH} characters"
            )
        if not is_utf8_encodable(stripped):
            raise CredentialValidationError("Role name contains invalid characters")
        if stripped not in normalized:
            normalized.append(stripped)
    return normalized
