"""
tests/conftest.py -- Shared test fixtures for TokenGate tests.

This module provides:
  - FakeClock: a settable unix-seconds clock injected into the AuthEngine
  - make_engine(): an AuthEngine over isolated stores and a FakeClock
  - _patch_lifespan(): wires a test engine into app.state, bypassing real startup
  - api_client: (TestClient, FakeClock) against the real FastAPI app

The environment must be prepared before any api/core import:
  DEBUG=true              -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4         -- keeps hashing fast; the cost factor is not under test
  RATE_LIMIT_ENABLED=false -- integration tests log in far more than 60/minute
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any api/auth/core import so get_settings() and the
# module-level limiter see these values.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.credentials import CredentialStore
from auth.engine import AuthEngine
from auth.store import MemoryTokenStore, TokenStore

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
START = 1_700_000_000


class FakeClock:
    """Callable returning a fixed unix time that tests move by hand."""

    def __init__(self, now: int = START) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


def make_engine(clock: FakeClock, tokens: TokenStore | None = None) -> AuthEngine:
    return AuthEngine(
        CredentialStore(rounds=4),
        tokens if tokens is not None else MemoryTokenStore(TEST_SECRET),
        clock=clock,
    )


def _patch_lifespan(engine: AuthEngine):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth = engine
        yield
        engine.tokens.close()

    return test_lifespan


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(clock: FakeClock) -> AuthEngine:
    return make_engine(clock)


@pytest.fixture
def api_client(engine: AuthEngine, clock: FakeClock) -> Generator[tuple[TestClient, FakeClock], None, None]:
    """Yield (client, clock) for integration tests.

    Function-scoped: every test starts with an empty token store and the clock
    at START, so lifecycle tests can move time freely.
    """
    app.router.lifespan_context = _patch_lifespan(engine)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, clock


def login(client: TestClient, username: str = "alice", password: str = "password1") -> dict:
    """POST ?endpoint=login and return the decoded body (asserting 200)."""
    resp = client.post("/api", params={"endpoint": "login"}, json={"username": username, "password": password})
    assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
    return resp.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
