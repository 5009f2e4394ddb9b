from __future__ import annotations

from typing import Protocol


class ProfileImagePort(Protocol):
    def upload(self, *, user_id: str, data: bytes, mime_type: str) -> str:
        ...

    def delete(self, *, key: str) -> None:
        ...

    def delete_all_for_user(self, *, user_id: str) -> int:
        ...

    def presigned_url(self, *, key: str) -> str:
        ...
