"""
tests/conftest.py -- Shared test fixtures for BannerBoard.

This module provides:
  - FakeClock / auth_config: deterministic time and a cheap bcrypt cost
  - user_store / revocation_store: fresh in-memory stores per test
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with an admin user and token for integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API client because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

The DEBUG env var must be set before any api/ import so get_settings()
auto-generates SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from uuid import uuid4

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
# Integration tests register and log in far more than a real client would.
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.passwords import hash_password
from auth.store import RevocationStore, UserStore
from auth.tokens import AuthConfig, TokenIssuer, TokenVerifier
from banners.files import BannerImageStore
from banners.store import BannerStore

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
TEST_ROUNDS = 4  # bcrypt minimum; keeps the suite fast


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auth_config(clock: FakeClock) -> AuthConfig:
    return AuthConfig(secret_key=TEST_SECRET, token_ttl_seconds=3600, bcrypt_rounds=TEST_ROUNDS, clock=clock)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def revocation_store() -> Generator[RevocationStore, None, None]:
    store = RevocationStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def issuer(auth_config: AuthConfig) -> TokenIssuer:
    return TokenIssuer(auth_config)


@pytest.fixture
def verifier(auth_config: AuthConfig, user_store: UserStore, revocation_store: RevocationStore) -> TokenVerifier:
    return TokenVerifier(auth_config, user_store, revocation_store)


def make_user(store: UserStore, username: str, role: str = "user", password: str = "pw123") -> User:
    """Insert a user directly and return the stored record."""
    uid = store.create_user(
        User(
            username=username,
            email=f"{username}@example.com",
            role=role,
            hashed_password=hash_password(password, rounds=TEST_ROUNDS),
        )
    )
    return store.get_by_id(uid)


# ---------------------------------------------------------------------------
# API integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(state: dict):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        for name, value in state.items():
            setattr(app.state, name, value)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()
        try:
            await app.state.purge_task
        except asyncio.CancelledError:
            pass

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The admin user is created before the client starts. Stores live in a
    named shared-memory DB unique to the requesting test module.
    """
    db_url = f"sqlite:///file:test_{uuid4().hex}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url)
    revocation_store = RevocationStore(db_url)
    banner_store = BannerStore(db_url)
    images = BannerImageStore(tmp_path_factory.mktemp("uploads"), max_bytes=1024)

    config = AuthConfig(secret_key=TEST_SECRET, bcrypt_rounds=TEST_ROUNDS)
    issuer = TokenIssuer(config)

    admin = make_user(user_store, "testadmin", role="admin", password="testpass123")
    token = issuer.issue(admin.id)

    app.router.lifespan_context = _patch_lifespan(
        {
            "auth_config": config,
            "user_store": user_store,
            "revocation_store": revocation_store,
            "token_issuer": issuer,
            "token_verifier": TokenVerifier(config, user_store, revocation_store),
            "banner_store": banner_store,
            "banner_images": images,
        }
    )

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    banner_store.close()
    revocation_store.close()
    user_store.close()


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
