from __future__ import annotations

import time
import unittest

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

from authsvc.domain.exceptions import AuthenticationError, InvalidIdentityAssertion
from authsvc.infrastructure.clients.apple_identity_client import APPLE_ISSUER, AppleIdentityClient


CLIENT_ID = "com.example.app"


class FakeSigningKey:
    def __init__(self, key):
        self.key = key


class FakeJwksClient:
    def __init__(self, public_key):
        self.public_key = public_key
        self.calls = 0

    def get_signing_key_from_jwt(self, token: str) -> FakeSigningKey:
        self.calls += 1
        return FakeSigningKey(self.public_key)


class AppleIdentityClientTest(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        cls.other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    def setUp(self):
        self.jwks = FakeJwksClient(self.private_key.public_key())
        self.client = AppleIdentityClient(client_id=CLIENT_ID, jwks_client=self.jwks)

    def _token(self, *, key=None, **overrides) -> str:
        now = int(time.time())
        claims = {
            "iss": APPLE_ISSUER,
            "aud": CLIENT_ID,
            "sub": "001234.abcdef",
            "iat": now,
            "exp": now + 600,
            "email": "alice@privaterelay.appleid.com",
            "email_verified": "true",
            "nonce": "nonce-1",
            "nonce_supported": True,
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        return jwt.encode(claims, key or self.private_key, algorithm="RS256", headers={"kid": "kid-1"})

    def test_valid_token_returns_claims(self):
        token = self._token()
        claims = self.client.verify(identity_token=token, nonce="nonce-1")

        self.assertEqual(claims.subject, "001234.abcdef")
        self.assertEqual(claims.email, "alice@privaterelay.appleid.com")
        self.assertTrue(claims.email_verified)
        self.assertEqual(claims.nonce, "nonce-1")
        self.assertLess(claims.issued_at, claims.expires_at)
        self.assertEqual(claims.claims, jwt.decode(token, options={"verify_signature": False}))
        self.assertEqual(self.jwks.calls, 1)

    def test_expired_token_is_rejected(self):
        now = int(time.time())
        with self.assertRaises(InvalidIdentityAssertion):
            self.client.verify(identity_token=self._token(iat=now - 1200, exp=now - 600), nonce="nonce-1")

    def test_wrong_audience_is_rejected(self):
        with self.assertRaises(InvalidIdentityAssertion):
            self.client.verify(identity_token=self._token(aud="com.other.app"), nonce="nonce-1")

    def test_wrong_issuer_is_rejected(self):
        with self.assertRaises(InvalidIdentityAssertion):
            self.client.verify(identity_token=self._token(iss="https://evil.example.com"), nonce="nonce-1")

    def test_signature_from_other_key_is_rejected(self):
        with self.assertRaises(InvalidIdentityAssertion):
            self.client.verify(identity_token=self._token(key=self.other_key), nonce="nonce-1")

    def test_nonce_mismatch_is_rejected(self):
        with self.assertRaises(InvalidIdentityAssertion):
            self.client.verify(identity_token=self._token(), nonce="nonce-2")

    def test_missing_nonce_when_supported_is_rejected(self):
        with self.assertRaises(InvalidIdentityAssertion):
            self.client.verify(identity_token=self._token(nonce=None, nonce_supported="true"), nonce="nonce-1")

    def test_nonce_not_checked_when_unsupported_and_absent(self):
        token = self._token(nonce=None, nonce_supported=False)
        claims = self.client.verify(identity_token=token, nonce="whatever")
        self.assertIsNone(claims.nonce)

    def test_missing_subject_is_rejected(self):
        with self.assertRaises(InvalidIdentityAssertion):
            self.client.verify(identity_token=self._token(sub=None), nonce="nonce-1")

    def test_rejection_is_an_authentication_error(self):
        with self.assertRaises(AuthenticationError):
            self.client.verify(identity_token="garbage", nonce="nonce-1")
