from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from authsvc.application.ports.profile_image_port import ProfileImagePort
from authsvc.domain.exceptions import InternalError


logger = logging.getLogger(__name__)

MIME_TYPE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
}


@dataclass(frozen=True)
class S3ProfileImageStoreSettings:
    bucket: str
    region: str
    access_key_id: str
    secret_access_key: str
    endpoint_url: str | None = None
    signed_url_expires_seconds: int = 86400


def profile_images_prefix(user_id: str) -> str:
    return f"profile-images/{user_id}/"


class S3ProfileImageStore(ProfileImagePort):
    def __init__(self, settings: S3ProfileImageStoreSettings, *, client=None):
        self._settings = settings
        self._client = client or boto3.client(
            "s3",
            region_name=settings.region,
            endpoint_url=settings.endpoint_url,
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
        )

    def upload(self, *, user_id: str, data: bytes, mime_type: str) -> str:
        ext = MIME_TYPE_EXTENSIONS.get(mime_type)
        if ext is None:
            raise ValueError(f"Unsupported image MIME type: {mime_type}")
        key = f"{profile_images_prefix(user_id)}{uuid4()}.{ext}"
        try:
            self._client.put_object(
                Bucket=self._settings.bucket,
                Key=key,
                Body=data,
                ContentType=mime_type,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("s3_profile_image_store: upload_failed user_id=%s error=%s", user_id, exc)
            raise InternalError("Failed to store profile image.") from exc
        logger.info("s3_profile_image_store: uploaded user_id=%s key=%s bytes=%s", user_id, key, len(data))
        return key

    def delete(self, *, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._settings.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.error("s3_profile_image_store: delete_failed key=%s error=%s", key, exc)
            raise InternalError("Failed to delete profile image.") from exc

    def delete_all_for_user(self, *, user_id: str) -> int:
        paginator = self._client.get_paginator("list_objects_v2")
        removed = 0
        try:
            for page in paginator.paginate(
                Bucket=self._settings.bucket,
                Prefix=profile_images_prefix(user_id),
                PaginationConfig={"PageSize": 1000},
            ):
                objects = [{"Key": item["Key"]} for item in page.get("Contents", [])]
                if not objects:
                    continue
                self._client.delete_objects(
                    Bucket=self._settings.bucket,
                    Delete={"Objects": objects, "Quiet": True},
                )
                removed += len(objects)
        except (BotoCoreError, ClientError) as exc:
            logger.error("s3_profile_image_store: purge_failed user_id=%s error=%s", user_id, exc)
            raise InternalError("Failed to delete profile images.") from exc
        return removed

    def presigned_url(self, *, key: str) -> str:
        expires = min(max(self._settings.signed_url_expires_seconds, 60), 604800)
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._settings.bucket, "Key": key},
            ExpiresIn=expires,
        )
