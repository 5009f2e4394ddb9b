from __future__ import annotations

from typing import Protocol

from authsvc.application.dto.auth import IdentityClaims


class IdentityVerifierPort(Protocol):
    def verify(self, *, identity_token: str, nonce: str) -> IdentityClaims:
        ...
