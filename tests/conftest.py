"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of synapse.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402

from synapse.database.models import Base  # noqa: E402
from synapse.database.store import DocumentStore  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Synapse tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in the rate limiter and by
    TestClient's worker threads).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def store(db_engine: Engine) -> DocumentStore:
    return DocumentStore(db_engine)


@pytest.fixture
def test_config():
    from synapse.config import SynapseConfig

    return SynapseConfig(
        festival_name="Synapse Test",
        festival_tagline="",
        dashboard_port=8000,
    )


@pytest.fixture
def sessions(db_engine: Engine):
    """The process-wide session store, bound to the test database."""
    from synapse.services.session_service import (
        configure_session_store,
        shutdown_session_store,
    )

    yield configure_session_store(engine=db_engine)
    shutdown_session_store()


# ---------------------------------------------------------------------------
# Accounts & tokens
# ---------------------------------------------------------------------------
def make_user(store: DocumentStore, uid: str = "user-1", first_name: str = "Asha",
              email: str | None = None):
    """Create a user profile and return it."""
    from synapse.schemas import ProfileForm
    from synapse.services.user_service import create_user_document, get_user_document

    result = create_user_document(
        store, uid, email=email or f"{uid}@example.com",
        form=ProfileForm(first_name=first_name, last_name="Test", college="VIT"),
    )
    assert result.success, result.error
    return get_user_document(store, uid)


def make_admin(store: DocumentStore, uid: str = "admin-1", permissions: list[str] | None = None,
               first_name: str = "Ravi"):
    """Create an admin profile holding *permissions* and return it."""
    from synapse.schemas import ProfileForm
    from synapse.services.user_service import (
        create_admin_document,
        get_admin_document,
        set_admin_permissions,
    )

    result = create_admin_document(
        store, uid, email=f"{uid}@example.com",
        form=ProfileForm(first_name=first_name, last_name="Admin"),
    )
    assert result.success, result.error
    if permissions:
        assert set_admin_permissions(store, uid, permissions).success
    return get_admin_document(store, uid)


def make_token(uid: str, email: str = "", *, session_id: str | None = None) -> str:
    """Open a session for *uid* (unless one is given) and sign a token for it."""
    from synapse.api.deps import issue_token
    from synapse.services.session_service import get_session_store

    if session_id is None:
        session_id = get_session_store().start(uid, email=email).id
    return issue_token(
        uid=uid, email=email or f"{uid}@example.com", name=uid, picture=None,
        session_id=session_id, expires_at=datetime.now(UTC) + timedelta(hours=1),
    )


def auth(uid: str, email: str = "") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(uid, email)}"}


@pytest.fixture
def client(db_engine: Engine, store: DocumentStore, sessions, test_config):
    """A TestClient wired to the in-memory database.

    Redirects are not followed so guard behaviour (303s) is visible.
    """
    from fastapi.testclient import TestClient

    from synapse.api.deps import get_config, get_engine
    from synapse.api.main import app
    from synapse.api.rate_limit import configure_rate_limiter
    from synapse.database.seed import seed_defaults

    seed_defaults(db_engine)
    configure_rate_limiter(engine=db_engine)
    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: test_config
    yield TestClient(app, raise_server_exceptions=False, follow_redirects=False)
    app.dependency_overrides.clear()
