from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from authsvc.domain.entities.user import Identity, Session, User


def _as_str(value: Any) -> str:
    return str(value)


def _as_utc(value: datetime | str | None) -> datetime | None:
    # SQLite hands back naive text timestamps; everything is stored as UTC.
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def map_row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        id=_as_str(row["id"]),
        full_name=row["full_name"],
        email=row["email"],
        display_name=row["display_name"],
        profile_image_key=row.get("profile_image_url"),
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )


def map_row_to_identity(row: Mapping[str, Any]) -> Identity:
    return Identity(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        provider=row["provider"],
        provider_user_id=row.get("provider_user_id"),
        identifier=row.get("identifier"),
        secret_hash=row.get("secret_hash"),
        provider_refresh_token_enc=row.get("provider_refresh_token_enc"),
        provider_refresh_token_updated_at=_as_utc(row.get("provider_refresh_token_updated_at")),
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )


def map_row_to_session(row: Mapping[str, Any]) -> Session:
    replaced_by = row.get("replaced_by_session_id")
    return Session(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        refresh_token_hash=row["refresh_token_hash"],
        refresh_token_expires_at=_as_utc(row["refresh_token_expires_at"]),
        created_at=_as_utc(row["created_at"]),
        last_used_at=_as_utc(row.get("last_used_at")),
        revoked_at=_as_utc(row.get("revoked_at")),
        revoke_reason=row.get("revoke_reason"),
        replaced_by_session_id=_as_str(replaced_by) if replaced_by is not None else None,
        user_agent=row.get("user_agent"),
        device_name=row.get("device_name"),
        ip_address=row.get("ip_address"),
    )
