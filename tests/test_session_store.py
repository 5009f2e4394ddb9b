from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine

from authsvc.application.dto.auth import DeviceInfo
from authsvc.application.services.session_store import SessionStore
from authsvc.domain.exceptions import AuthenticationError
from authsvc.infrastructure.db.engine import Base
from authsvc.infrastructure.db.repositories.accounts_repository import SqlAccountsRepository
from authsvc.infrastructure.security.token_service import JwtTokenService

import authsvc.infrastructure.db.models.accounts  # noqa: F401


DEVICE = DeviceInfo(user_agent="ios-app/1.0", device_name="iPhone", ip_address="203.0.113.9")


class RacingAccountsRepository(SqlAccountsRepository):
    """Holds every locking read until all racers have read the same row."""

    def __init__(self, engine, *, barrier: threading.Barrier, connection=None):
        super().__init__(engine, connection=connection)
        self._barrier = barrier

    def execute_in_transaction(self, fn):
        with self._engine.begin() as conn:
            return fn(RacingAccountsRepository(self._engine, barrier=self._barrier, connection=conn))

    def get_active_session_by_refresh_token_hash(self, *, refresh_token_hash, for_update=False):
        session = super().get_active_session_by_refresh_token_hash(
            refresh_token_hash=refresh_token_hash,
            for_update=for_update,
        )
        if for_update:
            self._barrier.wait(timeout=5)
        return session


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'auth.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def token_service():
    return JwtTokenService(
        jwt_secret="jwt-secret",
        refresh_token_pepper="pepper",
        access_ttl_minutes=15,
        refresh_ttl_days=30,
    )


@pytest.fixture()
def repo(engine):
    repo = SqlAccountsRepository(engine)
    now = datetime.now(timezone.utc)
    repo.create_user(
        user_id="user-1",
        full_name="Alice Example",
        email="alice@example.com",
        display_name="Alice Example",
        created_at=now,
    )
    return repo


def test_create_session_stores_hash_only(repo, token_service):
    store = SessionStore(auth_port=repo, token_port=token_service)

    issued = store.create_session(user_id="user-1", device=DEVICE)

    session = repo.get_session_by_id(session_id=issued.session_id)
    assert session.refresh_token_hash == token_service.hash_refresh_token(refresh_token=issued.refresh_token)
    assert session.refresh_token_hash != issued.refresh_token
    assert session.is_active
    assert session.device_name == "iPhone"
    assert session.ip_address == "203.0.113.9"


def test_rotate_session_revokes_old_and_links_new(repo, token_service):
    store = SessionStore(auth_port=repo, token_port=token_service)
    issued = store.create_session(user_id="user-1", device=DEVICE)

    rotated = store.rotate_session(refresh_token=issued.refresh_token, device=DEVICE)

    old = repo.get_session_by_id(session_id=issued.session_id)
    new = repo.get_session_by_id(session_id=rotated.session_id)
    assert rotated.user_id == "user-1"
    assert rotated.refresh_token != issued.refresh_token
    assert old.revoke_reason == "rotated"
    assert old.replaced_by_session_id == new.id
    assert old.last_used_at is not None
    assert new.is_active


def test_reusing_rotated_token_fails(repo, token_service):
    store = SessionStore(auth_port=repo, token_port=token_service)
    issued = store.create_session(user_id="user-1", device=DEVICE)
    store.rotate_session(refresh_token=issued.refresh_token, device=DEVICE)

    with pytest.raises(AuthenticationError):
        store.rotate_session(refresh_token=issued.refresh_token, device=DEVICE)


def test_unknown_and_blank_tokens_fail(repo, token_service):
    store = SessionStore(auth_port=repo, token_port=token_service)

    with pytest.raises(AuthenticationError):
        store.rotate_session(refresh_token="never-issued", device=DEVICE)
    with pytest.raises(AuthenticationError):
        store.rotate_session(refresh_token="   ", device=DEVICE)


def test_expired_session_is_revoked_as_expired(repo, token_service):
    store = SessionStore(auth_port=repo, token_port=token_service)
    now = datetime.now(timezone.utc)
    repo.create_session(
        session_id="session-old",
        user_id="user-1",
        refresh_token_hash=token_service.hash_refresh_token(refresh_token="stale-token"),
        refresh_token_expires_at=now - timedelta(seconds=1),
        user_agent=None,
        device_name=None,
        ip_address=None,
        created_at=now - timedelta(days=31),
    )

    with pytest.raises(AuthenticationError):
        store.rotate_session(refresh_token="stale-token", device=DEVICE)

    session = repo.get_session_by_id(session_id="session-old")
    assert session.revoke_reason == "expired"
    assert session.replaced_by_session_id is None


def test_concurrent_rotation_has_exactly_one_winner(engine, repo, token_service):
    issued = SessionStore(auth_port=repo, token_port=token_service).create_session(user_id="user-1", device=DEVICE)
    barrier = threading.Barrier(2)
    racing_store = SessionStore(
        auth_port=RacingAccountsRepository(engine, barrier=barrier),
        token_port=token_service,
    )
    results: list = []
    errors: list = []

    def rotate():
        try:
            results.append(racing_store.rotate_session(refresh_token=issued.refresh_token, device=DEVICE))
        except AuthenticationError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=rotate) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert len(results) == 1
    assert len(errors) == 1
    old = repo.get_session_by_id(session_id=issued.session_id)
    assert old.revoke_reason == "rotated"
    assert old.replaced_by_session_id == results[0].session_id
    assert repo.get_session_by_id(session_id=results[0].session_id).is_active


def test_revoke_session_is_idempotent(repo, token_service):
    store = SessionStore(auth_port=repo, token_port=token_service)
    issued = store.create_session(user_id="user-1", device=DEVICE)

    assert store.revoke_session(refresh_token=issued.refresh_token, reason="logout") is True
    assert store.revoke_session(refresh_token=issued.refresh_token, reason="logout") is False
    assert store.revoke_session(refresh_token="never-issued", reason="logout") is False

    session = repo.get_session_by_id(session_id=issued.session_id)
    assert session.revoke_reason == "logout"
    with pytest.raises(AuthenticationError):
        store.rotate_session(refresh_token=issued.refresh_token, device=DEVICE)
