"""
tests/conftest.py -- Shared test fixtures for helpdesk unit and integration tests.

This module provides:
  - db_url: a fresh named shared-memory SQLite URI per test
  - client: TestClient over create_app() with isolated settings, one per module
  - new_account: factory that seeds a user of any role and returns its token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

SECRET_KEY is set before any app import so nothing that happens to call
get_settings() during collection trips the startup check. Route tests never
rely on it: they build Settings explicitly and pass them to create_app().
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import Optional

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"

# Set before any api/ or core/ import.
os.environ.setdefault("SECRET_KEY", TEST_SECRET)

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.models import Role, User
from auth.passwords import hash_password
from core.config import Settings

TEST_PASSWORD = "correct-horse-battery"

# Hashing at cost 4 keeps the suite fast; production uses 12.
_TEST_HASH = hash_password(TEST_PASSWORD, rounds=4)


def _memory_url(name: str) -> str:
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


@dataclass
class Account:
    """A seeded user plus a session token for it."""

    id: str
    email: str
    name: str
    role: Role
    token: str
    password: str = TEST_PASSWORD
    headers: dict = field(init=False)

    def __post_init__(self) -> None:
        self.headers = {"Authorization": f"Bearer {self.token}"}


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url() -> str:
    """A database URL no other test shares."""
    return _memory_url(f"helpdesk_unit_{uuid.uuid4().hex}")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        secret_key=TEST_SECRET,
        database_url=_memory_url(f"helpdesk_settings_{uuid.uuid4().hex}"),
        bcrypt_rounds=4,
        allowed_hosts=["testserver"],
        upload_dir=tmp_path / "uploads",
    )


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def client(request, tmp_path_factory) -> Generator[TestClient, None, None]:
    """Yield a TestClient over a fully wired app with an isolated database.

    The lifespan runs (the client is used as a context manager), so
    app.state holds real stores, the session signer and the access gate.
    """
    module = request.module.__name__.replace(".", "_")
    test_settings = Settings(
        secret_key=TEST_SECRET,
        database_url=_memory_url(f"helpdesk_{module}"),
        bcrypt_rounds=4,
        allowed_hosts=["testserver"],
        upload_dir=tmp_path_factory.mktemp("uploads"),
    )
    app = create_app(test_settings)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture(scope="module")
def new_account(client: TestClient) -> Callable[..., Account]:
    """Return a factory: new_account(role=Role.USER, name=None) -> Account.

    Every call creates a user with a unique email directly in the store,
    bypassing /auth/register so any role can be seeded.
    """

    def factory(role: Role = Role.USER, name: Optional[str] = None) -> Account:
        suffix = uuid.uuid4().hex[:8]
        email = f"{role.value.lower()}-{suffix}@example.com"
        display = name or f"{role.value.title()} {suffix}"
        store = client.app.state.user_store
        user_id = store.create_user(User(email=email, name=display, hashed_password=_TEST_HASH, role=role))
        token = client.app.state.sessions.issue(user_id)
        return Account(id=user_id, email=email, name=display, role=role, token=token)

    return factory
