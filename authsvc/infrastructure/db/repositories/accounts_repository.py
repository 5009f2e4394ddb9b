from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, TypeVar

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from authsvc.application.ports.auth_port import AuthPort
from authsvc.domain.entities.user import Identity, Session, User
from authsvc.domain.exceptions import DuplicateRecordError
from authsvc.infrastructure.db.mappers.accounts_mapper import (
    map_row_to_identity,
    map_row_to_session,
    map_row_to_user,
)


T = TypeVar("T")

TIMESTAMP = DateTime(timezone=True)

USER_COLUMNS = "id, full_name, email, display_name, profile_image_url, created_at, updated_at"
IDENTITY_COLUMNS = (
    "id, user_id, provider, provider_user_id, identifier, secret_hash, "
    "provider_refresh_token_enc, provider_refresh_token_updated_at, created_at, updated_at"
)
SESSION_COLUMNS = (
    "id, user_id, refresh_token_hash, refresh_token_expires_at, created_at, last_used_at, "
    "revoked_at, revoke_reason, replaced_by_session_id, user_agent, device_name, ip_address"
)


def _sql(sql: str, *timestamp_params: str):
    stmt = text(sql)
    if timestamp_params:
        stmt = stmt.bindparams(*(bindparam(name, type_=TIMESTAMP) for name in timestamp_params))
    return stmt


class SqlAccountsRepository(AuthPort):
    """Users, identities and sessions.

    Outside ``execute_in_transaction`` every call runs in its own short
    transaction. Inside it, all calls share the connection handed to ``fn``
    and commit or roll back together. Unique-constraint violations surface
    as ``DuplicateRecordError`` once the transaction has rolled back.
    """

    def __init__(self, engine: Engine, *, connection: Connection | None = None):
        self._engine = engine
        self._connection = connection

    def execute_in_transaction(self, fn: Callable[[AuthPort], T]) -> T:
        if self._connection is not None:
            return fn(self)
        try:
            with self._engine.begin() as conn:
                return fn(SqlAccountsRepository(self._engine, connection=conn))
        except IntegrityError as exc:
            raise DuplicateRecordError(str(exc.orig)) from exc

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        if self._connection is not None:
            yield self._connection
            return
        try:
            with self._engine.begin() as conn:
                yield conn
        except IntegrityError as exc:
            raise DuplicateRecordError(str(exc.orig)) from exc

    def get_user_by_id(self, *, user_id: str) -> User | None:
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM users
            WHERE id = :user_id
            LIMIT 1
        """
        with self._connect() as conn:
            row = conn.execute(_sql(sql), {"user_id": user_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def get_user_by_email(self, *, email: str) -> User | None:
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM users
            WHERE lower(email) = :email
            LIMIT 1
        """
        with self._connect() as conn:
            row = conn.execute(_sql(sql), {"email": email.lower()}).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def create_user(
        self,
        *,
        user_id: str,
        full_name: str,
        email: str,
        display_name: str,
        created_at: datetime,
    ) -> User:
        sql = f"""
            INSERT INTO users (
                id, full_name, email, display_name, profile_image_url, created_at, updated_at
            ) VALUES (
                :id, :full_name, :email, :display_name, NULL, :created_at, :created_at
            )
            RETURNING {USER_COLUMNS}
        """
        params = {
            "id": user_id,
            "full_name": full_name,
            "email": email,
            "display_name": display_name,
            "created_at": created_at,
        }
        with self._connect() as conn:
            row = conn.execute(_sql(sql, "created_at"), params).mappings().one()
        return map_row_to_user(row)

    def update_user_profile(
        self,
        *,
        user_id: str,
        full_name: str | None,
        display_name: str | None,
        profile_image_key: str | None,
        updated_at: datetime,
    ) -> User | None:
        sql = f"""
            UPDATE users
            SET full_name = COALESCE(:full_name, full_name),
                display_name = COALESCE(:display_name, display_name),
                profile_image_url = COALESCE(:profile_image_key, profile_image_url),
                updated_at = :updated_at
            WHERE id = :user_id
            RETURNING {USER_COLUMNS}
        """
        params = {
            "user_id": user_id,
            "full_name": full_name,
            "display_name": display_name,
            "profile_image_key": profile_image_key,
            "updated_at": updated_at,
        }
        with self._connect() as conn:
            row = conn.execute(_sql(sql, "updated_at"), params).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def delete_user(self, *, user_id: str) -> bool:
        # Explicit child deletes so engines without enforced cascades behave the same.
        params = {"user_id": user_id}
        with self._connect() as conn:
            conn.execute(text("DELETE FROM sessions WHERE user_id = :user_id"), params)
            conn.execute(text("DELETE FROM identities WHERE user_id = :user_id"), params)
            result = conn.execute(text("DELETE FROM users WHERE id = :user_id"), params)
        return result.rowcount > 0

    def create_identity(
        self,
        *,
        identity_id: str,
        user_id: str,
        provider: str,
        provider_user_id: str,
        identifier: str | None,
        provider_refresh_token_enc: str | None,
        created_at: datetime,
    ) -> Identity:
        sql = f"""
            INSERT INTO identities (
                id, user_id, provider, provider_user_id, identifier, secret_hash,
                provider_refresh_token_enc, provider_refresh_token_updated_at, created_at, updated_at
            ) VALUES (
                :id, :user_id, :provider, :provider_user_id, :identifier, NULL,
                :provider_refresh_token_enc, :provider_refresh_token_updated_at, :created_at, :created_at
            )
            RETURNING {IDENTITY_COLUMNS}
        """
        params = {
            "id": identity_id,
            "user_id": user_id,
            "provider": provider,
            "provider_user_id": provider_user_id,
            "identifier": identifier,
            "provider_refresh_token_enc": provider_refresh_token_enc,
            "provider_refresh_token_updated_at": created_at if provider_refresh_token_enc else None,
            "created_at": created_at,
        }
        stmt = _sql(sql, "provider_refresh_token_updated_at", "created_at")
        with self._connect() as conn:
            row = conn.execute(stmt, params).mappings().one()
        return map_row_to_identity(row)

    def get_identity_by_provider_user_id(self, *, provider: str, provider_user_id: str) -> Identity | None:
        sql = f"""
            SELECT {IDENTITY_COLUMNS}
            FROM identities
            WHERE provider = :provider
              AND provider_user_id = :provider_user_id
            LIMIT 1
        """
        params = {"provider": provider, "provider_user_id": provider_user_id}
        with self._connect() as conn:
            row = conn.execute(_sql(sql), params).mappings().first()
        if row is None:
            return None
        return map_row_to_identity(row)

    def get_identity_for_user_provider(self, *, user_id: str, provider: str) -> Identity | None:
        sql = f"""
            SELECT {IDENTITY_COLUMNS}
            FROM identities
            WHERE user_id = :user_id
              AND provider = :provider
            LIMIT 1
        """
        with self._connect() as conn:
            row = conn.execute(_sql(sql), {"user_id": user_id, "provider": provider}).mappings().first()
        if row is None:
            return None
        return map_row_to_identity(row)

    def update_identity_provider_refresh_token(
        self,
        *,
        identity_id: str,
        provider_refresh_token_enc: str,
        updated_at: datetime,
    ) -> None:
        sql = """
            UPDATE identities
            SET provider_refresh_token_enc = :provider_refresh_token_enc,
                provider_refresh_token_updated_at = :updated_at,
                updated_at = :updated_at
            WHERE id = :identity_id
        """
        params = {
            "identity_id": identity_id,
            "provider_refresh_token_enc": provider_refresh_token_enc,
            "updated_at": updated_at,
        }
        with self._connect() as conn:
            conn.execute(_sql(sql, "updated_at"), params)

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
        sql = f"""
            INSERT INTO sessions (
                id, user_id, refresh_token_hash, refresh_token_expires_at, created_at,
                user_agent, device_name, ip_address
            ) VALUES (
                :id, :user_id, :refresh_token_hash, :refresh_token_expires_at, :created_at,
                :user_agent, :device_name, :ip_address
            )
            RETURNING {SESSION_COLUMNS}
        """
        params = {
            "id": session_id,
            "user_id": user_id,
            "refresh_token_hash": refresh_token_hash,
            "refresh_token_expires_at": refresh_token_expires_at,
            "created_at": created_at,
            "user_agent": user_agent,
            "device_name": device_name,
            "ip_address": ip_address,
        }
        stmt = _sql(sql, "refresh_token_expires_at", "created_at")
        with self._connect() as conn:
            row = conn.execute(stmt, params).mappings().one()
        return map_row_to_session(row)

    def get_active_session_by_refresh_token_hash(
        self,
        *,
        refresh_token_hash: str,
        for_update: bool = False,
    ) -> Session | None:
        sql = f"""
            SELECT {SESSION_COLUMNS}
            FROM sessions
            WHERE refresh_token_hash = :refresh_token_hash
              AND revoked_at IS NULL
            LIMIT 1
        """
        with self._connect() as conn:
            # SQLite has no row locks; the conditional revoke is the guard there.
            if for_update and conn.dialect.name != "sqlite":
                sql += " FOR UPDATE"
            row = conn.execute(_sql(sql), {"refresh_token_hash": refresh_token_hash}).mappings().first()
        if row is None:
            return None
        return map_row_to_session(row)

    def get_session_by_id(self, *, session_id: str) -> Session | None:
        sql = f"""
            SELECT {SESSION_COLUMNS}
            FROM sessions
            WHERE id = :session_id
            LIMIT 1
        """
        with self._connect() as conn:
            row = conn.execute(_sql(sql), {"session_id": session_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_session(row)

    def revoke_session(
        self,
        *,
        session_id: str,
        revoked_at: datetime,
        reason: str,
        replaced_by_session_id: str | None = None,
    ) -> bool:
        sql = """
            UPDATE sessions
            SET revoked_at = :revoked_at,
                revoke_reason = :reason,
                last_used_at = :revoked_at,
                replaced_by_session_id = COALESCE(:replaced_by_session_id, replaced_by_session_id)
            WHERE id = :session_id
              AND revoked_at IS NULL
        """
        params = {
            "session_id": session_id,
            "revoked_at": revoked_at,
            "reason": reason,
            "replaced_by_session_id": replaced_by_session_id,
        }
        with self._connect() as conn:
            result = conn.execute(_sql(sql, "revoked_at"), params)
        return result.rowcount == 1
