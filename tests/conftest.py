"""
tests/conftest.py -- Shared test fixtures for the Acquisitions API tests.

This module provides:
  - _make_test_store(): creates an isolated in-memory user DB
  - _patch_lifespan(): wires test store + gate into app.state, bypassing real startup
  - api_client: module-scoped TestClient with a seeded admin and its JWT
  - client: per-test view of api_client with cookies and rate limits reset
  - store: a plain in-memory UserStore for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

ENVIRONMENT must be set before any core/auth import so get_settings()
auto-generates SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import so get_settings() can
# auto-generate SECRET_KEY instead of raising ValueError.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("DATABASE_URL", "sqlite:///file:acquisitions_default?mode=memory&cache=shared&uri=true")

import pytest
from fastapi.testclient import TestClient

from admission.gate import AdmissionGate
from api.main import app
from auth.models import User
from auth.passwords import hash_password
from auth.store import UserStore
from auth.tokens import create_access_token
from core.config import get_settings

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return UserStore(db_url=f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore, gate: AdmissionGate):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.admission_gate = gate
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers and the real admission gate (default limits) but
    an isolated in-memory store.
    """
    user_store = _make_test_store(request.module.__name__.replace(".", "_"))
    admin = user_store.create_user(
        User(name="Test Admin", email=ADMIN_EMAIL, role="admin", hashed_password=hash_password(ADMIN_PASSWORD))
    )
    token = create_access_token(admin.id, admin.email, admin.role, expire_seconds=3600)
    gate = AdmissionGate.from_settings(get_settings())

    app.router.lifespan_context = _patch_lifespan(user_store, gate)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    user_store.close()


@pytest.fixture
def client(api_client) -> TestClient:
    """The module's TestClient with no cookies and empty rate-limit windows.

    httpx keeps Set-Cookie values between requests, so a sign-in in one test
    would otherwise authenticate the next one.
    """
    test_client, _token, _uid = api_client
    test_client.cookies.clear()
    app.state.admission_gate.reset()
    return test_client


@pytest.fixture
def admin_headers(api_client) -> dict[str, str]:
    _client, token, _uid = api_client
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    """A fresh private in-memory UserStore for unit tests."""
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()
