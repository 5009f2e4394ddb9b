from __future__ import annotations

import base64
import os

import pytest
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from authsvc.infrastructure.security.token_cipher import (
    ASSOCIATED_DATA,
    NONCE_SIZE,
    AesGcmTokenCipher,
    TokenCipherError,
)


def _open(key: bytes, sealed: str, associated_data: bytes = ASSOCIATED_DATA) -> str:
    raw = base64.urlsafe_b64decode(sealed.encode("ascii"))
    return AESGCM(key).decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], associated_data).decode("utf-8")


def test_sealed_token_opens_with_the_same_key():
    key = os.urandom(32)
    sealed = AesGcmTokenCipher(key).encrypt("apple-refresh-token")

    assert "apple-refresh-token" not in sealed
    assert _open(key, sealed) == "apple-refresh-token"


def test_each_encryption_uses_a_fresh_nonce():
    cipher = AesGcmTokenCipher(os.urandom(32))
    assert cipher.encrypt("same") != cipher.encrypt("same")


def test_sealed_token_is_bound_to_key_and_column():
    key = os.urandom(32)
    sealed = AesGcmTokenCipher(key).encrypt("apple-refresh-token")

    with pytest.raises(InvalidTag):
        _open(os.urandom(32), sealed)
    with pytest.raises(InvalidTag):
        _open(key, sealed, associated_data=b"other.column")


def test_tampered_ciphertext_fails_authentication():
    key = os.urandom(32)
    raw = bytearray(base64.urlsafe_b64decode(AesGcmTokenCipher(key).encrypt("apple-refresh-token")))
    raw[-1] ^= 0x01

    with pytest.raises(InvalidTag):
        _open(key, base64.urlsafe_b64encode(bytes(raw)).decode("ascii"))


def test_from_base64_requires_32_byte_key():
    key = os.urandom(32)
    cipher = AesGcmTokenCipher.from_base64(base64.urlsafe_b64encode(key).decode("ascii"))
    assert _open(key, cipher.encrypt("x")) == "x"

    with pytest.raises(TokenCipherError):
        AesGcmTokenCipher.from_base64(base64.urlsafe_b64encode(os.urandom(16)).decode("ascii"))
