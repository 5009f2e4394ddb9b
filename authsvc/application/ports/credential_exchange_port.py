from __future__ import annotations

from typing import Protocol

from authsvc.application.dto.auth import ProviderTokens


class CredentialExchangePort(Protocol):
    def exchange(self, *, authorization_code: str) -> ProviderTokens:
        ...

    def revoke(self, *, refresh_token: str) -> None:
        ...
