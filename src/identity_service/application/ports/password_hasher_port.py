"""Port for password hashing and verification."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class HashedPassword:
    """Encoded password digest plus the salt it was derived with."""

    digest: str
    salt: str


@dataclass(frozen=True)
class PasswordHashResult:
    """Either a hashed password or the reason the input was rejected."""

    hashed: HashedPassword | None = None
    error: str | None = None

    @property
    def accepted(self) -> bool:
        return self.hashed is not None

    @classmethod
    def success(cls, hashed: HashedPassword) -> PasswordHashResult:
        return cls(hashed=hashed)

    @classmethod
    def rejected(cls, error: str) -> PasswordHashResult:
        return cls(error=error)


class PasswordHasherPort(Protocol):
    """Password hashing/verification contract."""

    def hash_password(self, password: str) -> PasswordHashResult:
        """Hash plaintext password with a fresh salt for storage."""

    def verify_password(self, *, password: str, password_hash: str, password_salt: str) -> bool:
        """Verify plaintext password against stored hash and salt."""
