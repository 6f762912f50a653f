"""SHA-256 digest adapter for opaque refresh-token secrets."""

from __future__ import annotations

import base64
import hashlib

from identity_service.application.ports.token_hasher_port import TokenHasherPort


class Sha256TokenHasher(TokenHasherPort):
    """Deterministic, unsalted SHA-256 digest encoded as base64.

    Secrets carry 256 bits of entropy, so a salt adds nothing and would prevent
    digest lookups.
    """

    def digest(self, secret: str) -> str:
        if not secret or not secret.strip():
            raise ValueError("token secret must not be empty")
        try:
            encoded = secret.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ValueError("token secret is not valid text") from exc
        return base64.b64encode(hashlib.sha256(encoded).digest()).decode("ascii")
