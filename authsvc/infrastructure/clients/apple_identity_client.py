from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import jwt

from authsvc.application.dto.auth import IdentityClaims
from authsvc.application.ports.identity_verifier_port import IdentityVerifierPort
from authsvc.domain.exceptions import InvalidIdentityAssertion


logger = logging.getLogger(__name__)

APPLE_ISSUER = "https://appleid.apple.com"
APPLE_KEYS_URL = "https://appleid.apple.com/auth/keys"
REQUIRED_CLAIMS = ["iss", "aud", "exp", "iat", "sub"]


class AppleIdentityClient(IdentityVerifierPort):
    """Verifies Sign in with Apple identity tokens.

    Apple's key set is held by ``PyJWKClient``; it is fetched on first use and
    refreshed after ``jwks_cache_ttl_seconds`` or when a token names an unknown
    ``kid``. Expiry is checked once, inside ``jwt.decode``, with no leeway.
    """

    def __init__(
        self,
        *,
        client_id: str,
        keys_url: str = APPLE_KEYS_URL,
        jwks_cache_ttl_seconds: float = 3600,
        timeout_seconds: float = 10,
        jwks_client: jwt.PyJWKClient | None = None,
    ):
        self._client_id = client_id
        self._jwks_client = jwks_client or jwt.PyJWKClient(
            keys_url,
            cache_jwk_set=True,
            lifespan=jwks_cache_ttl_seconds,
            timeout=timeout_seconds,
        )

    def verify(self, *, identity_token: str, nonce: str) -> IdentityClaims:
        try:
            signing_key = self._jwks_client.get_signing_key_from_jwt(identity_token)
            payload = jwt.decode(
                identity_token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self._client_id,
                issuer=APPLE_ISSUER,
                options={"require": REQUIRED_CLAIMS},
            )
            return _to_claims(payload, expected_nonce=nonce)
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            logger.info("apple_identity_client: rejected reason=%s", type(exc).__name__)
            raise InvalidIdentityAssertion("Invalid Apple identity token.") from exc


def _to_claims(payload: dict[str, Any], *, expected_nonce: str) -> IdentityClaims:
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ValueError("Missing subject.")

    nonce = payload.get("nonce")
    if nonce is not None and not isinstance(nonce, str):
        raise ValueError("Malformed nonce.")
    nonce_supported = _as_bool(payload.get("nonce_supported", False), claim="nonce_supported")
    if (nonce_supported or nonce is not None) and nonce != expected_nonce:
        raise ValueError("Nonce mismatch.")

    email = payload.get("email")
    if email is not None and not isinstance(email, str):
        raise ValueError("Malformed email.")

    return IdentityClaims(
        subject=subject,
        email=email,
        email_verified=_as_bool(payload.get("email_verified", False), claim="email_verified"),
        nonce=nonce,
        issued_at=_to_datetime(payload["iat"]),
        expires_at=_to_datetime(payload["exp"]),
        claims=dict(payload),
    )


def _as_bool(value: Any, *, claim: str) -> bool:
    # Apple sends some boolean claims as the strings "true" / "false".
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValueError(f"Malformed {claim}.")


def _to_datetime(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)
