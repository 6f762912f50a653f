"""Exceptions shared by application services and infrastructure adapters."""

from __future__ import annotations


class StorageError(RuntimeError):
    """Raised by persistence adapters when the backing store fails."""


class DuplicateAccountError(StorageError):
    """Raised when an account insert collides with an existing normalized email."""

    def __init__(self, *, email: str) -> None:
        super().__init__("account email already exists")
        self.email = email
