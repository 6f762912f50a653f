"""Port for one-way refresh-token digests."""

from __future__ import annotations

from typing import Protocol


class TokenHasherPort(Protocol):
    """Deterministic digest of opaque token secrets."""

    def digest(self, secret: str) -> str:
        """Return the storage digest for one secret.

        Raises ValueError for blank secrets and for text that cannot be encoded.
        """
