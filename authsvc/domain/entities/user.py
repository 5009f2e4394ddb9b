from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


IdentityProvider = Literal["apple"]
RevokeReason = Literal["expired", "rotated", "logout"]


@dataclass(frozen=True)
class User:
    id: str
    full_name: str
    email: str
    display_name: str
    profile_image_key: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Identity:
    id: str
    user_id: str
    provider: IdentityProvider
    provider_user_id: str | None
    identifier: str | None
    secret_hash: str | None
    provider_refresh_token_enc: str | None
    provider_refresh_token_updated_at: datetime | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Session:
    id: str
    user_id: str
    refresh_token_hash: str
    refresh_token_expires_at: datetime
    created_at: datetime
    last_used_at: datetime | None
    revoked_at: datetime | None
    revoke_reason: RevokeReason | None
    replaced_by_session_id: str | None
    user_agent: str | None
    device_name: str | None
    ip_address: str | None

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None

    def is_expired(self, now: datetime) -> bool:
        return self.refresh_token_expires_at <= now
