from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request

from authsvc.application.dto.auth import DeviceInfo
from authsvc.application.services.session_store import SessionStore
from authsvc.application.use_cases.auth_common import authenticate_user
from authsvc.application.use_cases.delete_account import DeleteAccountUseCase
from authsvc.application.use_cases.get_me import GetMeUseCase
from authsvc.application.use_cases.refresh_session import RefreshSessionUseCase
from authsvc.application.use_cases.sign_in import SignInUseCase
from authsvc.application.use_cases.sign_out import SignOutUseCase
from authsvc.application.use_cases.update_profile import UpdateProfileUseCase
from authsvc.domain.entities.user import User
from authsvc.domain.exceptions import AuthenticationError
from authsvc.infrastructure.clients.apple_identity_client import AppleIdentityClient
from authsvc.infrastructure.clients.apple_token_client import AppleTokenClient, AppleTokenClientSettings
from authsvc.infrastructure.db.engine import get_engine
from authsvc.infrastructure.db.repositories.accounts_repository import SqlAccountsRepository
from authsvc.infrastructure.security.token_cipher import AesGcmTokenCipher
from authsvc.infrastructure.security.token_service import JwtTokenService
from authsvc.infrastructure.storage.s3_profile_image_store import (
    S3ProfileImageStore,
    S3ProfileImageStoreSettings,
)
from authsvc.shared.config import get_settings


def _get_db_engine():
    settings = get_settings()
    if not settings.database_url:
        raise HTTPException(status_code=500, detail="DATABASE_URL is required.")
    return get_engine(settings.database_url)


def _get_accounts_repository() -> SqlAccountsRepository:
    return SqlAccountsRepository(_get_db_engine())


@lru_cache(maxsize=1)
def _get_token_service() -> JwtTokenService:
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(status_code=500, detail="JWT_SECRET is required.")
    if not settings.refresh_token_pepper:
        raise HTTPException(status_code=500, detail="REFRESH_TOKEN_PEPPER is required.")
    return JwtTokenService(
        jwt_secret=settings.jwt_secret,
        refresh_token_pepper=settings.refresh_token_pepper,
        access_ttl_minutes=settings.access_token_ttl_minutes,
        refresh_ttl_days=settings.refresh_token_ttl_days,
    )


@lru_cache(maxsize=1)
def _get_identity_verifier() -> AppleIdentityClient:
    settings = get_settings()
    if not settings.apple_client_id:
        raise HTTPException(status_code=500, detail="APPLE_CLIENT_ID is required.")
    return AppleIdentityClient(
        client_id=settings.apple_client_id,
        keys_url=settings.apple_keys_url,
        jwks_cache_ttl_seconds=settings.apple_jwks_cache_ttl_seconds,
        timeout_seconds=settings.apple_http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def _get_credential_exchanger() -> AppleTokenClient:
    settings = get_settings()
    if not settings.apple_client_id or not settings.apple_client_secret:
        raise HTTPException(status_code=500, detail="APPLE_CLIENT_ID and APPLE_CLIENT_SECRET are required.")
    return AppleTokenClient(
        AppleTokenClientSettings(
            client_id=settings.apple_client_id,
            client_secret=settings.apple_client_secret,
            token_url=settings.apple_token_url,
            revoke_url=settings.apple_revoke_url,
            timeout_seconds=settings.apple_http_timeout_seconds,
        )
    )


@lru_cache(maxsize=1)
def _get_token_cipher() -> AesGcmTokenCipher:
    settings = get_settings()
    if not settings.provider_token_encryption_key:
        raise HTTPException(status_code=500, detail="PROVIDER_TOKEN_ENCRYPTION_KEY is required.")
    return AesGcmTokenCipher.from_base64(settings.provider_token_encryption_key)


@lru_cache(maxsize=1)
def _get_profile_image_store() -> S3ProfileImageStore:
    settings = get_settings()
    if not settings.s3_bucket or not settings.s3_region:
        raise HTTPException(status_code=500, detail="S3_BUCKET and S3_REGION are required.")
    return S3ProfileImageStore(
        S3ProfileImageStoreSettings(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            endpoint_url=settings.s3_endpoint,
            signed_url_expires_seconds=settings.s3_signed_url_expires_seconds,
        )
    )


def _get_session_store() -> SessionStore:
    return SessionStore(auth_port=_get_accounts_repository(), token_port=_get_token_service())


def get_sign_in_use_case() -> SignInUseCase:
    return SignInUseCase(
        auth_port=_get_accounts_repository(),
        identity_verifier=_get_identity_verifier(),
        credential_exchanger=_get_credential_exchanger(),
        token_port=_get_token_service(),
        token_cipher=_get_token_cipher(),
        session_store=_get_session_store(),
        image_port=_get_profile_image_store(),
    )


def get_refresh_session_use_case() -> RefreshSessionUseCase:
    return RefreshSessionUseCase(
        auth_port=_get_accounts_repository(),
        token_port=_get_token_service(),
        session_store=_get_session_store(),
        image_port=_get_profile_image_store(),
    )


def get_sign_out_use_case() -> SignOutUseCase:
    return SignOutUseCase(session_store=_get_session_store())


def get_delete_account_use_case() -> DeleteAccountUseCase:
    return DeleteAccountUseCase(
        auth_port=_get_accounts_repository(),
        identity_verifier=_get_identity_verifier(),
        credential_exchanger=_get_credential_exchanger(),
        token_port=_get_token_service(),
        image_port=_get_profile_image_store(),
    )


def get_update_profile_use_case() -> UpdateProfileUseCase:
    return UpdateProfileUseCase(
        auth_port=_get_accounts_repository(),
        token_port=_get_token_service(),
        image_port=_get_profile_image_store(),
    )


def get_get_me_use_case() -> GetMeUseCase:
    return GetMeUseCase(image_port=_get_profile_image_store())


def get_access_token(authorization: str | None = Header(default=None)) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return token


def get_current_user(access_token: str = Depends(get_access_token)) -> User:
    try:
        return authenticate_user(
            access_token=access_token,
            auth_port=_get_accounts_repository(),
            token_port=_get_token_service(),
        )
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail="Unauthorized") from exc


def get_device_info(
    request: Request,
    user_agent: str | None = Header(default=None),
    x_device_name: str | None = Header(default=None),
    x_forwarded_for: str | None = Header(default=None),
    x_real_ip: str | None = Header(default=None),
) -> DeviceInfo:
    return DeviceInfo(
        user_agent=user_agent,
        device_name=x_device_name,
        ip_address=client_ip(
            x_forwarded_for=x_forwarded_for,
            x_real_ip=x_real_ip,
            peer_host=request.client.host if request.client else None,
        ),
    )


def client_ip(*, x_forwarded_for: str | None, x_real_ip: str | None, peer_host: str | None) -> str | None:
    if x_forwarded_for:
        first = x_forwarded_for.split(",")[0].strip()
        if first:
            return first
    if x_real_ip and x_real_ip.strip():
        return x_real_ip.strip()
    if peer_host:
        return peer_host.removeprefix("::ffff:")
    return None
