"""
Shared pytest fixtures for the push dispatch backend.

Environment is prepared at import time so that ``app.core.config.settings``
sees a fresh VAPID key pair and a throwaway database when the app modules
are first imported.
"""

from __future__ import annotations

import base64
import os
import tempfile
import threading
from typing import Callable, Dict, Iterator, List

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
import httpx
import pytest


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _generate_vapid_env() -> tuple[str, str]:
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_der = private_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    public_raw = private_key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    return _b64url(public_raw), _b64url(private_der)


TEST_VAPID_PUBLIC_KEY, TEST_VAPID_PRIVATE_KEY = _generate_vapid_env()
TEST_VAPID_SUBJECT = "mailto:push-tests@example.com"

os.environ["VAPID_PUBLIC_KEY"] = TEST_VAPID_PUBLIC_KEY
os.environ["VAPID_PRIVATE_KEY"] = TEST_VAPID_PRIVATE_KEY
os.environ["VAPID_SUBJECT"] = TEST_VAPID_SUBJECT
os.environ["SECRET_KEY"] = "test-secret-key-for-bearer-tokens"
os.environ["DATABASE_URL"] = (
    f"sqlite:///{os.path.join(tempfile.mkdtemp(prefix='routine-push-'), 'app.db')}"
)

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.api.dependencies.database import get_db  # noqa: E402
from app.api.dependencies.services import (  # noqa: E402
    get_push_transport,
    get_subscription_store,
)
from app.auth import create_access_token  # noqa: E402
from app.core.vapid import ServerKeyPair, load_server_keys  # noqa: E402
from app.database import Base, build_engine  # noqa: E402
from app.main import app  # noqa: E402
from app.services.push_subscription_store import SqlSubscriptionStore  # noqa: E402


class FakePushService:
    """
    Stand-in for browser push services behind an httpx.MockTransport.

    Answers 201 unless a status was configured for the exact endpoint URL.
    """

    def __init__(self) -> None:
        self.statuses: Dict[str, int] = {}
        self.requests: List[httpx.Request] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        return httpx.Response(self.statuses.get(str(request.url), 201))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def urls(self) -> List[str]:
        with self._lock:
            return sorted(str(request.url) for request in self.requests)


@pytest.fixture
def session_factory(tmp_path) -> Iterator[sessionmaker]:
    """File-backed SQLite so worker threads can open their own connections."""
    engine = build_engine(f"sqlite:///{tmp_path / 'push.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def server_keys() -> ServerKeyPair:
    return load_server_keys(TEST_VAPID_PUBLIC_KEY, TEST_VAPID_PRIVATE_KEY)


@pytest.fixture
def fake_push_service() -> FakePushService:
    return FakePushService()


@pytest.fixture
def client(session_factory, fake_push_service) -> Iterator[TestClient]:
    """TestClient wired to the per-test database and the fake push service."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_subscription_store] = lambda: SqlSubscriptionStore(session_factory)
    app.dependency_overrides[get_push_transport] = lambda: fake_push_service.transport

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_auth_headers() -> Callable[[str], Dict[str, str]]:
    def _make(user_id: str) -> Dict[str, str]:
        token = create_access_token({"sub": user_id})
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def auth_headers(make_auth_headers) -> Dict[str, str]:
    return make_auth_headers("user-1")
