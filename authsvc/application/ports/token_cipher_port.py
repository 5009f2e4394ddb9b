from __future__ import annotations

from typing import Protocol


class TokenCipherPort(Protocol):
    def encrypt(self, plaintext: str) -> str:
        ...
