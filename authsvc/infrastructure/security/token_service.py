from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

import jwt

from authsvc.application.ports.token_port import TokenPort
from authsvc.domain.exceptions import AuthenticationError


REFRESH_TOKEN_BYTES = 32


class JwtTokenService(TokenPort):
    def __init__(
        self,
        *,
        jwt_secret: str,
        refresh_token_pepper: str,
        access_ttl_minutes: int,
        refresh_ttl_days: int,
    ):
        if not jwt_secret or not refresh_token_pepper:
            raise ValueError("jwt_secret and refresh_token_pepper are required.")
        if hmac.compare_digest(jwt_secret, refresh_token_pepper):
            raise ValueError("refresh_token_pepper must differ from jwt_secret.")
        self._jwt_secret = jwt_secret
        self._pepper = refresh_token_pepper.encode("utf-8")
        self._access_ttl_minutes = access_ttl_minutes
        self._refresh_ttl_days = refresh_ttl_days

    def generate_access_token(self, *, user_id: str, now: datetime) -> tuple[str, datetime]:
        exp = now + timedelta(minutes=self._access_ttl_minutes)
        payload = {
            "sub": user_id,
            "type": "access",
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
        }
        token = jwt.encode(payload, self._jwt_secret, algorithm="HS256")
        return token, exp

    def verify_access_token(self, *, token: str) -> str:
        try:
            payload = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=["HS256"],
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as exc:
            raise AuthenticationError("Invalid access token.") from exc

        if payload.get("type") != "access":
            raise AuthenticationError("Invalid access token.")

        user_id = payload.get("sub")
        if not user_id or not isinstance(user_id, str):
            raise AuthenticationError("Invalid access token.")
        return user_id

    def generate_refresh_token(self, *, now: datetime) -> tuple[str, datetime]:
        token = secrets.token_urlsafe(REFRESH_TOKEN_BYTES)
        return token, now + timedelta(days=self._refresh_ttl_days)

    def hash_refresh_token(self, *, refresh_token: str) -> str:
        return hmac.new(self._pepper, refresh_token.encode("utf-8"), hashlib.sha256).hexdigest()
