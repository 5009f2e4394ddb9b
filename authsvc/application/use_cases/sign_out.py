from __future__ import annotations

from authsvc.application.dto.auth import SignOutInput, SignOutOutput
from authsvc.application.services.session_store import SessionStore


class SignOutUseCase:
    def __init__(self, *, session_store: SessionStore):
        self._session_store = session_store

    def execute(self, command: SignOutInput) -> SignOutOutput:
        found = self._session_store.revoke_session(refresh_token=command.refresh_token, reason="logout")
        return SignOutOutput(found=found)
