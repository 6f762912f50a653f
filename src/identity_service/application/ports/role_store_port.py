"""Port for the external role catalog."""

from __future__ import annotations

from typing import Protocol


class RoleStorePort(Protocol):
    """Role catalog contract."""

    async def role_exists(self, *, name: str) -> bool:
        """Return whether a role with this exact name exists."""

    async def list_roles(self) -> list[str]:
        """Return all role names in deterministic order."""
