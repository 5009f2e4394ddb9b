from __future__ import annotations

from authsvc.application.dto.auth import AuthTokensOutput, RefreshSessionInput
from authsvc.application.ports.auth_port import AuthPort
from authsvc.application.ports.profile_image_port import ProfileImagePort
from authsvc.application.ports.token_port import TokenPort
from authsvc.application.services.session_store import SessionStore
from authsvc.domain.exceptions import AuthenticationError

from .auth_common import build_auth_user_output, utcnow


class RefreshSessionUseCase:
    def __init__(
        self,
        *,
        auth_port: AuthPort,
        token_port: TokenPort,
        session_store: SessionStore,
        image_port: ProfileImagePort | None = None,
    ):
        self._auth_port = auth_port
        self._token_port = token_port
        self._session_store = session_store
        self._image_port = image_port

    def execute(self, command: RefreshSessionInput) -> AuthTokensOutput:
        rotated = self._session_store.rotate_session(
            refresh_token=command.refresh_token,
            device=command.device,
        )
        user = self._auth_port.get_user_by_id(user_id=rotated.user_id)
        if user is None:
            raise AuthenticationError("Invalid refresh token.")

        access_token, access_expires_at = self._token_port.generate_access_token(user_id=user.id, now=utcnow())
        return AuthTokensOutput(
            user=build_auth_user_output(user, self._image_port),
            access_token=access_token,
            access_token_expires_at=access_expires_at,
            refresh_token=rotated.refresh_token,
            refresh_token_expires_at=rotated.expires_at,
        )
