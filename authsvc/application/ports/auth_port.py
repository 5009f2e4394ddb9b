from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol, TypeVar

from authsvc.domain.entities.user import Identity, IdentityProvider, RevokeReason, Session, User


TAuthResult = TypeVar("TAuthResult")


class AuthPort(Protocol):
    def execute_in_transaction(self, fn: Callable[[AuthPort], TAuthResult]) -> TAuthResult:
        ...

    def get_user_by_id(self, *, user_id: str) -> User | None:
        ...

    def get_user_by_email(self, *, email: str) -> User | None:
        ...

    def create_user(
        self,
        *,
        user_id: str,
        full_name: str,
        email: str,
        display_name: str,
        created_at: datetime,
    ) -> User:
        ...

    def update_user_profile(
        self,
        *,
        user_id: str,
        full_name: str | None,
        display_name: str | None,
        profile_image_key: str | None,
        updated_at: datetime,
    ) -> User | None:
        ...

    def delete_user(self, *, user_id: str) -> bool:
        ...

    def create_identity(
        self,
        *,
        identity_id: str,
        user_id: str,
        provider: IdentityProvider,
        provider_user_id: str,
        identifier: str | None,
        provider_refresh_token_enc: str | None,
        created_at: datetime,
    ) -> Identity:
        ...

    def get_identity_by_provider_user_id(
        self,
        *,
        provider: IdentityProvider,
        provider_user_id: str,
    ) -> Identity | None:
        ...

    def get_identity_for_user_provider(
        self,
        *,
        user_id: str,
        provider: IdentityProvider,
    ) -> Identity | None:
        ...

    def update_identity_provider_refresh_token(
        self,
        *,
        identity_id: str,
        provider_refresh_token_enc: str,
        updated_at: datetime,
    ) -> None:
        ...

    def create_session(
        self,
        *,
        session_id: str,
        user_id: str,
        refresh_token_hash: str,
        refresh_token_expires_at: datetime,
        user_agent: str | None,
        device_name: str | None,
        ip_address: str | None,
        created_at: datetime,
    ) -> Session:
        ...

    def get_active_session_by_refresh_token_hash(
        self,
        *,
        refresh_token_hash: str,
        for_update: bool = False,
    ) -> Session | None:
        ...

    def revoke_session(
        self,
        *,
        session_id: str,
        revoked_at: datetime,
        reason: RevokeReason,
        replaced_by_session_id: str | None = None,
    ) -> bool:
        ...
