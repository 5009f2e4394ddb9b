"""AES-256-GCM sealing of Apple refresh tokens stored in ``identities``.

Stored form is urlsafe base64 of ``nonce (12 bytes) || ciphertext || tag``,
authenticated with ``ASSOCIATED_DATA``.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from authsvc.application.ports.token_cipher_port import TokenCipherPort


NONCE_SIZE = 12
KEY_SIZE = 32
ASSOCIATED_DATA = b"identities.provider_refresh_token"


class TokenCipherError(ValueError):
    pass


class AesGcmTokenCipher(TokenCipherPort):
    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise TokenCipherError(f"Encryption key must be {KEY_SIZE} bytes, got {len(key)}.")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_base64(cls, encoded_key: str) -> AesGcmTokenCipher:
        try:
            key = base64.urlsafe_b64decode(encoded_key.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise TokenCipherError("Encryption key is not valid base64.") from exc
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), ASSOCIATED_DATA)
        return base64.urlsafe_b64encode(nonce + sealed).decode("ascii")
