"""Authenticated symmetric encryption for stored token records."""

from __future__ import annotations

import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from broker.core.errors import IntegrityError

NONCE_SIZE = 12
TAG_SIZE = 16


class TokenCipherService:
    """Encrypt and decrypt strings with AES-256-GCM under a derived key.

    Each ciphertext is ``base64(nonce || ciphertext || tag)`` with a fresh
    random nonce, so encrypting the same plaintext twice yields different
    output.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        key = hashlib.sha256(secret.encode("utf-8")).digest()
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the ciphertext."""
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a ciphertext string and return the plaintext.

        Raises ``IntegrityError`` when the input is malformed, was produced
        under another key, or has been altered.
        """
        try:
            raw = base64.b64decode(ciphertext.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise IntegrityError("Ciphertext is not valid base64.") from exc

        if len(raw) < NONCE_SIZE + TAG_SIZE:
            raise IntegrityError("Ciphertext is too short to contain a nonce and tag.")

        nonce, sealed = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            plaintext = self._aead.decrypt(nonce, sealed, None)
        except InvalidTag as exc:
            raise IntegrityError(
                "Failed to decrypt token; authentication tag did not verify."
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService"]
