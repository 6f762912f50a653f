"""Port for the external account directory consumed by identity use cases."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID


@dataclass(frozen=True)
class AccountRecord:
    """Account identity as seen by the token lifecycle. Credentials stay in the store."""

    account_id: UUID
    email: str
    first_name: str
    last_name: str
    phone_number: str | None
    is_active: bool
    roles: tuple[str, ...]
    lockout_end: datetime | None
    last_login_at: datetime | None
    created_at: datetime

    def is_locked_out(self, *, now: datetime) -> bool:
        return self.lockout_end is not None and self.lockout_end > now


@dataclass(frozen=True)
class AccountCreateInput:
    """Input payload for creating one account with a pre-hashed credential."""

    account_id: UUID
    email: str
    first_name: str
    last_name: str
    password_hash: str
    password_salt: str
    created_at: datetime
    phone_number: str | None = None
    is_active: bool = True


class AccountStorePort(Protocol):
    """Account store contract."""

    async def get_by_email(self, *, email: str) -> AccountRecord | None:
        """Return account by normalized email, including inactive accounts."""

    async def get_by_id(self, *, account_id: UUID) -> AccountRecord | None:
        """Return account by id, including inactive accounts."""

    async def create_account(self, payload: AccountCreateInput) -> AccountRecord:
        """Persist a new account with no roles."""

    async def verify_password(self, *, account_id: UUID, password: str) -> bool:
        """Return whether the plaintext matches the stored credential."""

    async def set_last_login(self, *, account_id: UUID, logged_in_at: datetime) -> None:
        """Record the last successful login timestamp."""

    async def get_roles(self, *, account_id: UUID) -> list[str]:
        """Return role names currently assigned to the account."""

    async def add_roles(self, *, account_id: UUID, role_names: Sequence[str]) -> None:
        """Assign role names to the account."""

    async def remove_roles(self, *, account_id: UUID, role_names: Sequence[str]) -> None:
        """Remove role names from the account."""
