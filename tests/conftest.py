"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of adreward.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from adreward.config import AdRewardConfig  # noqa: E402
from adreward.database.engine import enable_sqlite_transactions  # noqa: E402
from adreward.database.models import Base  # noqa: E402

# Wednesday; the Sunday-reset week runs 2026-10-11 → 2026-10-17.
MIDWEEK = datetime(2026, 10, 14, 12, 0, tzinfo=UTC)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all adreward tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in :func:`run_db`).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_transactions(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """A file-backed SQLite engine for tests that need real concurrency.

    Each thread gets its own connection; writers serialize on the
    database lock.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'adreward.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    enable_sqlite_transactions(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def config() -> AdRewardConfig:
    return AdRewardConfig()


@pytest.fixture
def make_user(db_engine):
    """Factory: register a user directly through the identity service."""
    from adreward.services import identity_service

    counter = iter(range(1, 10_000))

    def _make(username: str | None = None, password: str = "hunter22"):
        n = next(counter)
        username = username or f"viewer{n}"
        return identity_service.create_user(
            db_engine, username, f"{username}@example.com", password
        )

    return _make


@pytest.fixture
def client(db_engine, config):
    """FastAPI TestClient bound to the in-memory engine.

    Entered as a context manager so the app lifespan (table creation,
    weekly competition bootstrap) runs against the test engine.
    """
    from fastapi.testclient import TestClient

    from adreward.api.deps import get_config, get_engine
    from adreward.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: config
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, username: str = "watcher", password: str = "hunter22") -> str:
    """Register through the API and return the bearer token."""
    resp = client.post(
        "/api/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["token"]
