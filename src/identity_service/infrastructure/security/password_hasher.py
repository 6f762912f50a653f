"""PBKDF2-SHA256 password hasher adapter."""

from __future__ import annotations

import base64
import binascii
import secrets

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from identity_service.application.ports.password_hasher_port import (
    HashedPassword,
    PasswordHasherPort,
    PasswordHashResult,
)
from identity_service.config.errors import ConfigurationError
from identity_service.domain.auth.credentials import (
    CredentialValidationError,
    check_password_length,
    is_utf8_encodable,
)

DEFAULT_ITERATIONS = 100_000
MIN_ITERATIONS = 10_000
SALT_BYTES = 16
KEY_BYTES = 32
_SCHEME = "pbkdf2_sha256"


class Pbkdf2PasswordHasher(PasswordHasherPort):
    """Salted PBKDF2-HMAC-SHA256 hashing.

    Digests are stored as ``pbkdf2_sha256$<iterations>$<base64 key>`` so the
    iteration count can be raised later without invalidating existing hashes.
    """

    def __init__(self, *, iterations: int = DEFAULT_ITERATIONS) -> None:
        if iterations < MIN_ITERATIONS:
            raise ConfigurationError(
                f"password hash iterations must be at least {MIN_ITERATIONS}"
            )
        self._iterations = iterations

    def hash_password(self, password: str) -> PasswordHashResult:
        try:
            check_password_length(password=password)
        except CredentialValidationError as exc:
            return PasswordHashResult.rejected(str(exc))

        salt = secrets.token_bytes(SALT_BYTES)
        derived = _kdf(salt=salt, iterations=self._iterations).derive(password.encode("utf-8"))
        return PasswordHashResult.success(
            HashedPassword(
                digest=f"{_SCHEME}${self._iterations}${_b64encode(derived)}",
                salt=_b64encode(salt),
            )
        )

    def verify_password(self, *, password: str, password_hash: str, password_salt: str) -> bool:
        """Return False for wrong passwords and for malformed stored values."""

        if not password or not password.strip() or not is_utf8_encodable(password):
            return False

        parts = password_hash.split("$")
        if len(parts) != 3 or parts[0] != _SCHEME:
            return False
        try:
            iterations = int(parts[1])
            expected = base64.b64decode(parts[2], validate=True)
            salt = base64.b64decode(password_salt, validate=True)
        except (ValueError, binascii.Error):
            return False
        if iterations <= 0 or not salt or len(expected) != KEY_BYTES:
            return False

        try:
            _kdf(salt=salt, iterations=iterations).verify(password.encode("utf-8"), expected)
        except InvalidKey:
            return False
        return True


def _kdf(*, salt: bytes, iterations: int) -> PBKDF2HMAC:
    # PBKDF2HMAC instances are single-use.
    return PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=salt,
        iterations=iterations,
    )


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")
