from __future__ import annotations

import logging

from authsvc.application.dto.auth import AuthUserOutput
from authsvc.application.dto.profile import UpdateProfileInput
from authsvc.application.ports.auth_port import AuthPort
from authsvc.application.ports.profile_image_port import ProfileImagePort
from authsvc.application.ports.token_port import TokenPort
from authsvc.domain.exceptions import AuthenticationError, ValidationError

from .auth_common import authenticate_user, build_auth_user_output, utcnow


logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/jpg"})


class UpdateProfileUseCase:
    def __init__(self, *, auth_port: AuthPort, token_port: TokenPort, image_port: ProfileImagePort):
        self._auth_port = auth_port
        self._token_port = token_port
        self._image_port = image_port

    def execute(self, command: UpdateProfileInput) -> AuthUserOutput:
        user = authenticate_user(
            access_token=command.access_token,
            auth_port=self._auth_port,
            token_port=self._token_port,
        )

        full_name = _clean_name(command.full_name, field="fullName")
        display_name = _clean_name(command.display_name, field="displayName")
        has_image = command.image_bytes is not None or command.image_mime_type is not None
        if has_image:
            _validate_image(command.image_bytes, command.image_mime_type)

        if full_name is None and display_name is None and not has_image:
            return build_auth_user_output(user, self._image_port)

        image_key = None
        if has_image:
            image_key = self._image_port.upload(
                user_id=user.id,
                data=command.image_bytes,
                mime_type=command.image_mime_type,
            )

        updated = self._auth_port.update_user_profile(
            user_id=user.id,
            full_name=full_name,
            display_name=display_name,
            profile_image_key=image_key,
            updated_at=utcnow(),
        )
        if updated is None:
            if image_key:
                self._image_port.delete(key=image_key)
            raise AuthenticationError("Invalid access token.")

        if image_key and user.profile_image_key and user.profile_image_key != image_key:
            try:
                self._image_port.delete(key=user.profile_image_key)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "update_profile: previous_image_cleanup_failed user_id=%s key=%s",
                    user.id,
                    user.profile_image_key,
                )

        logger.info(
            "update_profile: updated user_id=%s full_name=%s display_name=%s image=%s",
            user.id,
            full_name is not None,
            display_name is not None,
            image_key is not None,
        )
        return build_auth_user_output(updated, self._image_port)


def _clean_name(value: str | None, *, field: str) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        raise ValidationError(f"{field} must not be blank.", fields={field: "Must not be blank."})
    return cleaned


def _validate_image(data: bytes | None, mime_type: str | None) -> None:
    if not data:
        raise ValidationError("Image payload is empty.", fields={"imageBase64": "Required with imageMimeType."})
    if mime_type not in SUPPORTED_IMAGE_MIME_TYPES:
        raise ValidationError(
            "Unsupported image MIME type.",
            fields={"imageMimeType": "Must be one of image/png, image/jpeg, image/jpg."},
        )
