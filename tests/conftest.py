"""
tests/conftest.py -- Shared test fixtures for Better Demo integration tests.

This module provides:
  - _make_test_store(): an AuthStore over a fresh in-memory mongomock database
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - web_client: TestClient (follow_redirects=False) over a real AuthService
  - mock_web_client: same, but app.state.auth is a MagicMock for call assertions
  - signed_in: a registered user whose session cookie sits in web_client's jar

The environment must be prepared before any app import: get_settings() is
cached on first use and auth/oauth.py registers providers at import time.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')
os.environ.setdefault("GITHUB_CLIENT_ID", "test-github-client-id")
os.environ.setdefault("GITHUB_CLIENT_SECRET", "test-github-client-secret")

import mongomock
import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.service import AuthService, SignInResult
from auth.store import AuthStore
from auth.tokens import SESSION_COOKIE_NAME

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store() -> AuthStore:
    """Return an AuthStore over an isolated mongomock database with indexes.

    A uuid-suffixed database name keeps tests from seeing each other's users.
    """
    database = mongomock.MongoClient().get_database(f"better-demo-test-{uuid.uuid4().hex[:8]}")
    store = AuthStore(database)
    store.ensure_indexes()
    return store


def _patch_lifespan(auth, db=None, oauth=None):
    """Return an async context manager that replaces the real lifespan.

    No MongoDB server is contacted: the database handle and the OAuth
    registry are mocks unless a test supplies its own.

    The purge_task is a long-sleeping coroutine so shutdown has a real
    asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth = auth
        app.state.db = db if db is not None else MagicMock(**{"ping.return_value": True})
        app.state.oauth = oauth if oauth is not None else MagicMock()
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> AuthStore:
    return _make_test_store()


@pytest.fixture
def auth_service(store: AuthStore) -> AuthService:
    return AuthService(store)


@pytest.fixture
def web_client(auth_service: AuthService) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real ASGI stack and a real AuthService.

    follow_redirects=False is essential: tests assert on redirect
    *locations*, which are invisible once the client follows them.
    """
    app.router.lifespan_context = _patch_lifespan(auth_service)
    with TestClient(app, follow_redirects=False) as client:
        yield client


@pytest.fixture
def mock_auth() -> MagicMock:
    """A stand-in AuthService. get_session returns None (signed out) by default."""
    auth = MagicMock(spec=AuthService)
    auth.get_session.return_value = None
    return auth


@pytest.fixture
def mock_web_client(mock_auth: MagicMock) -> Generator[TestClient, None, None]:
    app.router.lifespan_context = _patch_lifespan(mock_auth)
    with TestClient(app, follow_redirects=False) as client:
        yield client


@pytest.fixture
def signed_in(web_client: TestClient, auth_service: AuthService) -> SignInResult:
    """Register Jane Doe and put her session cookie in web_client's jar."""
    result = auth_service.sign_up_email("Jane Doe", "jane@example.com", "Password1")
    web_client.cookies.set(SESSION_COOKIE_NAME, result.cookie_value)
    return result


@pytest.fixture
def sign_in_result() -> SignInResult:
    """A SignInResult for routes under test with a mocked AuthService."""
    return SignInResult(session=MagicMock(), cookie_value="signed-cookie-value", max_age=3600)
