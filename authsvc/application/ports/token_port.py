from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TokenPort(Protocol):
    def generate_access_token(self, *, user_id: str, now: datetime) -> tuple[str, datetime]:
        ...

    def verify_access_token(self, *, token: str) -> str:
        ...

    def generate_refresh_token(self, *, now: datetime) -> tuple[str, datetime]:
        ...

    def hash_refresh_token(self, *, refresh_token: str) -> str:
        ...
