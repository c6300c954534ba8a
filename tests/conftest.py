"""
tests/conftest.py -- Shared test fixtures for ProjectHub integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + projects
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: (client, user_store, project_store) with a fresh database per test
  - make_user / auth_header: factories for accounts and Bearer headers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The refresh cookie is Secure, so the client talks to https://testserver;
"testserver" is added to ALLOWED_HOSTS for TrustedHostMiddleware.

Environment must be set before any application import: get_settings() is
cached on first use and auth/tokens.py reads it at module load.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ALLOWED_HOSTS"] = '["localhost", "testserver"]'

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password, issue_access_token
from projects.models import Project
from projects.store import ProjectStore

PASSWORD = "correct-horse-battery"

# bcrypt is deliberately slow; hash the shared test password once.
_PASSWORD_HASH = hash_password(PASSWORD)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _make_test_stores() -> tuple[UserStore, ProjectStore]:
    """Create isolated named shared-memory SQLite stores for one test."""
    return UserStore(db_url=_memory_url("users")), ProjectStore(db_url=_memory_url("projects"))


def _patch_lifespan(user_store: UserStore, project_store: ProjectStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.project_store = project_store
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(db_url=_memory_url("users"))
    yield store
    store.close()


@pytest.fixture
def project_store() -> Generator[ProjectStore, None, None]:
    store = ProjectStore(db_url=_memory_url("projects"))
    yield store
    store.close()


@pytest.fixture
def api() -> Generator[tuple[TestClient, UserStore, ProjectStore], None, None]:
    """Yield (client, user_store, project_store) backed by a fresh database.

    The TestClient uses the real FastAPI app with a patched lifespan, so
    tests hit real middleware, dependencies and handlers.
    """
    users, projects = _make_test_stores()
    app.router.lifespan_context = _patch_lifespan(users, projects)

    with TestClient(app, base_url="https://testserver", raise_server_exceptions=True) as client:
        yield client, users, projects

    projects.close()
    users.close()


@pytest.fixture
def make_user() -> Callable[..., int]:
    """Factory: make_user(store, "alice", is_admin=False, is_active=True) -> user id.

    Every user gets the password PASSWORD and the email <username>@example.com.
    """

    def _make(store: UserStore, username: str, is_admin: bool = False, is_active: bool = True) -> int:
        return store.create_user(
            User(
                username=username,
                email=f"{username}@example.com",
                hashed_password=_PASSWORD_HASH,
                is_admin=is_admin,
                is_active=is_active,
            )
        )

    return _make


@pytest.fixture
def make_project() -> Callable[..., Project]:
    """Factory: make_project(store, owner_id, "Name") -> the stored Project."""

    def _make(store: ProjectStore, owner_id: int, name: str, is_active: bool = True) -> Project:
        project_id = store.create_project(
            Project(owner_id=owner_id, name=name, short_description=f"{name} summary", is_active=is_active)
        )
        return store.get_project(project_id)

    return _make


def auth_header(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_access_token(user_id)}"}


@pytest.fixture(name="auth_header")
def auth_header_fixture() -> Callable[[int], dict[str, str]]:
    return auth_header


@pytest.fixture
def password() -> str:
    """The plaintext password of every make_user() account."""
    return PASSWORD
