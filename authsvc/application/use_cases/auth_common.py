from __future__ import annotations

from datetime import datetime, timezone

from authsvc.application.dto.auth import AuthUserOutput
from authsvc.application.ports.auth_port import AuthPort
from authsvc.application.ports.profile_image_port import ProfileImagePort
from authsvc.application.ports.token_port import TokenPort
from authsvc.domain.entities.user import User
from authsvc.domain.exceptions import AuthenticationError


PROVIDER = "apple"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def build_auth_user_output(user: User, image_port: ProfileImagePort | None) -> AuthUserOutput:
    image_url = None
    if user.profile_image_key and image_port is not None:
        image_url = image_port.presigned_url(key=user.profile_image_key)
    return AuthUserOutput(
        id=user.id,
        full_name=user.full_name,
        email=user.email,
        display_name=user.display_name,
        profile_image_url=image_url,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def authenticate_user(*, access_token: str, auth_port: AuthPort, token_port: TokenPort) -> User:
    user_id = token_port.verify_access_token(token=access_token)
    user = auth_port.get_user_by_id(user_id=user_id)
    if user is None:
        raise AuthenticationError("Invalid access token.")
    return user
