from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, text

from authsvc.application.dto.auth import DeviceInfo, IdentityClaims, ProviderTokens, SignInInput
from authsvc.application.services.session_store import SessionStore
from authsvc.application.use_cases.sign_in import SignInUseCase
from authsvc.infrastructure.db.engine import Base
from authsvc.infrastructure.db.repositories.accounts_repository import SqlAccountsRepository
from authsvc.infrastructure.security.token_service import JwtTokenService

import authsvc.infrastructure.db.models.accounts  # noqa: F401


DEVICE = DeviceInfo(user_agent="ios-app/1.0", device_name="iPhone", ip_address="203.0.113.9")


class RacingSignInRepository(SqlAccountsRepository):
    """Holds each thread's first identity lookup until every racer has missed it."""

    def __init__(self, engine, *, barrier: threading.Barrier):
        super().__init__(engine)
        self._barrier = barrier
        self._seen = threading.local()

    def get_identity_by_provider_user_id(self, *, provider, provider_user_id):
        identity = super().get_identity_by_provider_user_id(provider=provider, provider_user_id=provider_user_id)
        if not getattr(self._seen, "done", False):
            self._seen.done = True
            self._barrier.wait(timeout=5)
        return identity


class StaticIdentityVerifier:
    def verify(self, *, identity_token: str, nonce: str) -> IdentityClaims:
        now = datetime.now(timezone.utc)
        return IdentityClaims(
            subject="apple-sub-1",
            email=None,
            email_verified=False,
            nonce=nonce,
            issued_at=now,
            expires_at=now + timedelta(minutes=10),
        )


class StaticCredentialExchanger:
    def exchange(self, *, authorization_code: str) -> ProviderTokens:
        return ProviderTokens(
            access_token="apple-at",
            refresh_token=f"apple-rt-{authorization_code}",
            id_token="apple-idt",
            expires_in=3600,
        )

    def revoke(self, *, refresh_token: str) -> None:
        pass


class PlainTokenCipher:
    def encrypt(self, plaintext: str) -> str:
        return f"enc:{plaintext}"


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'auth.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


def _count(engine, table: str) -> int:
    with engine.connect() as conn:
        return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()


def test_concurrent_first_sign_ins_for_same_subject_share_one_user(engine):
    token_service = JwtTokenService(
        jwt_secret="jwt-secret",
        refresh_token_pepper="pepper",
        access_ttl_minutes=15,
        refresh_ttl_days=30,
    )
    repo = RacingSignInRepository(engine, barrier=threading.Barrier(2))
    use_case = SignInUseCase(
        auth_port=repo,
        identity_verifier=StaticIdentityVerifier(),
        credential_exchanger=StaticCredentialExchanger(),
        token_port=token_service,
        token_cipher=PlainTokenCipher(),
        session_store=SessionStore(auth_port=repo, token_port=token_service),
    )
    results: list = []
    errors: list = []

    def sign_in(code: str):
        try:
            results.append(
                use_case.execute(
                    SignInInput(
                        identity_token="identity-token",
                        authorization_code=code,
                        nonce="nonce-1",
                        full_name="Alice Example",
                        email="alice@example.com",
                        device=DEVICE,
                    )
                )
            )
        except Exception as exc:  # noqa: BLE001
            errors.append(type(exc).__name__)

    threads = [threading.Thread(target=sign_in, args=(f"code-{n}",)) for n in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(result.created for result in results) == [False, True]
    assert results[0].user.id == results[1].user.id
    assert _count(engine, "users") == 1
    assert _count(engine, "identities") == 1
    assert _count(engine, "sessions") == 2
