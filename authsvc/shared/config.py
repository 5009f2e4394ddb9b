from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


@dataclass(frozen=True)
class Settings:
    database_url: str
    apple_client_id: str
    apple_client_secret: str
    apple_keys_url: str
    apple_token_url: str
    apple_revoke_url: str
    apple_http_timeout_seconds: float
    apple_jwks_cache_ttl_seconds: float
    jwt_secret: str
    refresh_token_pepper: str
    access_token_ttl_minutes: int
    refresh_token_ttl_days: int
    provider_token_encryption_key: str
    s3_bucket: str
    s3_region: str
    s3_access_key_id: str
    s3_secret_access_key: str
    s3_endpoint: str | None
    s3_signed_url_expires_seconds: int
    log_level: str


def load_settings() -> Settings:
    return Settings(
        database_url=_env("DATABASE_URL", ""),
        apple_client_id=_env("APPLE_CLIENT_ID", ""),
        apple_client_secret=_env("APPLE_CLIENT_SECRET", ""),
        apple_keys_url=_env("APPLE_KEYS_URL", "https://appleid.apple.com/auth/keys"),
        apple_token_url=_env("APPLE_TOKEN_URL", "https://appleid.apple.com/auth/token"),
        apple_revoke_url=_env("APPLE_REVOKE_URL", "https://appleid.apple.com/auth/revoke"),
        apple_http_timeout_seconds=float(_env("APPLE_HTTP_TIMEOUT_SECONDS", "10")),
        apple_jwks_cache_ttl_seconds=float(_env("APPLE_JWKS_CACHE_TTL_SECONDS", "3600")),
        jwt_secret=_env("JWT_SECRET", ""),
        refresh_token_pepper=_env("REFRESH_TOKEN_PEPPER", ""),
        access_token_ttl_minutes=int(_env("ACCESS_TOKEN_TTL_MINUTES", "15")),
        refresh_token_ttl_days=int(_env("REFRESH_TOKEN_TTL_DAYS", "30")),
        provider_token_encryption_key=_env("PROVIDER_TOKEN_ENCRYPTION_KEY", ""),
        s3_bucket=_env("S3_BUCKET", ""),
        s3_region=_env("S3_REGION", ""),
        s3_access_key_id=_env("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_env("S3_SECRET_ACCESS_KEY", ""),
        s3_endpoint=_env("S3_ENDPOINT") or None,
        s3_signed_url_expires_seconds=_clamp(int(_env("S3_SIGNED_URL_EXPIRES_SECONDS", "86400")), 60, 604800),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
