from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class DeviceInfo:
    user_agent: str | None = None
    device_name: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True)
class AuthUserOutput:
    id: str
    full_name: str
    email: str
    display_name: str
    profile_image_url: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class SignInInput:
    identity_token: str
    authorization_code: str
    nonce: str
    full_name: str | None
    email: str | None
    device: DeviceInfo


@dataclass(frozen=True)
class SignInOutput:
    user: AuthUserOutput
    access_token: str
    access_token_expires_at: datetime
    refresh_token: str
    refresh_token_expires_at: datetime
    created: bool


@dataclass(frozen=True)
class RefreshSessionInput:
    refresh_token: str
    device: DeviceInfo


@dataclass(frozen=True)
class AuthTokensOutput:
    user: AuthUserOutput
    access_token: str
    access_token_expires_at: datetime
    refresh_token: str
    refresh_token_expires_at: datetime


@dataclass(frozen=True)
class SignOutInput:
    refresh_token: str


@dataclass(frozen=True)
class SignOutOutput:
    found: bool


@dataclass(frozen=True)
class DeleteAccountInput:
    access_token: str
    identity_token: str
    authorization_code: str
    nonce: str


@dataclass(frozen=True)
class IdentityClaims:
    subject: str
    email: str | None
    email_verified: bool
    nonce: str | None
    issued_at: datetime
    expires_at: datetime
    claims: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderTokens:
    access_token: str
    refresh_token: str
    id_token: str
    expires_in: int


@dataclass(frozen=True)
class IssuedRefreshToken:
    session_id: str
    refresh_token: str
    expires_at: datetime


@dataclass(frozen=True)
class RotatedSession:
    session_id: str
    user_id: str
    refresh_token: str
    expires_at: datetime
