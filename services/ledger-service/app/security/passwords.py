"""Salted PBKDF2 password hashing with constant-time verification."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets

SALT_BYTES = 16
HASH_BYTES = 32
ITERATIONS = 100_000
DIGEST = "sha512"
SEPARATOR = "."


class CredentialHasher:
    """Derive and check credential artifacts of the form ``base64(salt).base64(hash)``.

    The artifact does not record its parameters, so ``ITERATIONS`` and
    ``DIGEST`` are fixed for the lifetime of stored hashes.
    """

    def hash(self, plaintext: str) -> str:
        salt = secrets.token_bytes(SALT_BYTES)
        derived = self._derive(plaintext, salt, HASH_BYTES)
        return SEPARATOR.join(
            (
                base64.b64encode(salt).decode("ascii"),
                base64.b64encode(derived).decode("ascii"),
            )
        )

    def verify(self, plaintext: str, artifact: str) -> bool:
        """Return ``True`` when ``plaintext`` produced ``artifact``.

        Malformed artifacts return ``False`` instead of raising so a corrupt
        stored hash fails closed.
        """
        parsed = self._parse(artifact)
        if parsed is None:
            return False
        salt, expected = parsed
        candidate = self._derive(plaintext, salt, len(expected))
        return hmac.compare_digest(candidate, expected)

    def _derive(self, plaintext: str, salt: bytes, length: int) -> bytes:
        return hashlib.pbkdf2_hmac(DIGEST, plaintext.encode("utf-8"), salt, ITERATIONS, dklen=length)

    def _parse(self, artifact: str) -> tuple[bytes, bytes] | None:
        if not isinstance(artifact, str):
            return None
        parts = artifact.split(SEPARATOR)
        if len(parts) != 2:
            return None
        try:
            salt = base64.b64decode(parts[0], validate=True)
            expected = base64.b64decode(parts[1], validate=True)
        except (binascii.Error, ValueError):
            return None
        if not salt or not expected:
            return None
        return salt, expected
