from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import uuid4

from authsvc.application.dto.auth import DeviceInfo, IssuedRefreshToken, RotatedSession
from authsvc.application.ports.auth_port import AuthPort
from authsvc.application.ports.token_port import TokenPort
from authsvc.domain.entities.user import RevokeReason
from authsvc.domain.exceptions import AuthenticationError


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Refresh-token sessions keyed by the peppered hash of the token.

    Every state change happens inside ``AuthPort.execute_in_transaction``; the
    storage row is the only source of truth, so two processes rotating the
    same token still produce a single winner.
    """

    def __init__(self, *, auth_port: AuthPort, token_port: TokenPort):
        self._auth_port = auth_port
        self._token_port = token_port

    def create_session(
        self,
        *,
        user_id: str,
        device: DeviceInfo,
        auth_port: AuthPort | None = None,
    ) -> IssuedRefreshToken:
        port = auth_port or self._auth_port
        now = utcnow()
        refresh_token, expires_at = self._token_port.generate_refresh_token(now=now)
        session = port.create_session(
            session_id=str(uuid4()),
            user_id=user_id,
            refresh_token_hash=self._token_port.hash_refresh_token(refresh_token=refresh_token),
            refresh_token_expires_at=expires_at,
            user_agent=device.user_agent,
            device_name=device.device_name,
            ip_address=device.ip_address,
            created_at=now,
        )
        logger.info("session_store: created session_id=%s user_id=%s", session.id, user_id)
        return IssuedRefreshToken(session_id=session.id, refresh_token=refresh_token, expires_at=expires_at)

    def rotate_session(self, *, refresh_token: str, device: DeviceInfo) -> RotatedSession:
        token = refresh_token.strip()
        if not token:
            raise AuthenticationError("Invalid refresh token.")
        refresh_hash = self._token_port.hash_refresh_token(refresh_token=token)

        def _tx(auth_port: AuthPort) -> RotatedSession | None:
            now = utcnow()
            session = auth_port.get_active_session_by_refresh_token_hash(
                refresh_token_hash=refresh_hash,
                for_update=True,
            )
            if session is None:
                return None
            if session.is_expired(now):
                # Committed on purpose: the expiry transition must survive the failed refresh.
                auth_port.revoke_session(session_id=session.id, revoked_at=now, reason="expired")
                logger.info("session_store: expired session_id=%s user_id=%s", session.id, session.user_id)
                return None

            issued = self.create_session(user_id=session.user_id, device=device, auth_port=auth_port)
            revoked = auth_port.revoke_session(
                session_id=session.id,
                revoked_at=now,
                reason="rotated",
                replaced_by_session_id=issued.session_id,
            )
            if not revoked:
                # Another transaction revoked the row first; rolls back the new session too.
                raise AuthenticationError("Invalid refresh token.")

            logger.info(
                "session_store: rotated session_id=%s replaced_by=%s user_id=%s",
                session.id,
                issued.session_id,
                session.user_id,
            )
            return RotatedSession(
                session_id=issued.session_id,
                user_id=session.user_id,
                refresh_token=issued.refresh_token,
                expires_at=issued.expires_at,
            )

        rotated = self._auth_port.execute_in_transaction(_tx)
        if rotated is None:
            raise AuthenticationError("Invalid refresh token.")
        return rotated

    def revoke_session(self, *, refresh_token: str, reason: RevokeReason) -> bool:
        token = refresh_token.strip()
        if not token:
            return False
        refresh_hash = self._token_port.hash_refresh_token(refresh_token=token)

        def _tx(auth_port: AuthPort) -> bool:
            session = auth_port.get_active_session_by_refresh_token_hash(
                refresh_token_hash=refresh_hash,
                for_update=True,
            )
            if session is None:
                return False
            return auth_port.revoke_session(session_id=session.id, revoked_at=utcnow(), reason=reason)

        found = self._auth_port.execute_in_transaction(_tx)
        logger.info("session_store: revoke reason=%s found=%s", reason, found)
        return found
