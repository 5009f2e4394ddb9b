from __future__ import annotations

from authsvc.application.dto.auth import AuthUserOutput
from authsvc.application.ports.profile_image_port import ProfileImagePort
from authsvc.domain.entities.user import User

from .auth_common import build_auth_user_output


class GetMeUseCase:
    def __init__(self, *, image_port: ProfileImagePort | None = None):
        self._image_port = image_port

    def execute(self, *, user: User) -> AuthUserOutput:
        return build_auth_user_output(user, self._image_port)
