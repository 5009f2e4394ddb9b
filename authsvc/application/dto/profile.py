from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UpdateProfileInput:
    access_token: str
    full_name: str | None = None
    display_name: str | None = None
    image_bytes: bytes | None = None
    image_mime_type: str | None = None
