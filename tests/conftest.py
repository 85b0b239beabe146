"""
tests/conftest.py -- Shared test fixtures for HomeCinema tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for auth + catalog
  - _seed(): reference roles, the three standard accounts and a few movies
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: (TestClient, headers) for API integration tests
  - user_store / membership: in-memory unit-test fixtures

Standard accounts:
  alice / alice-pw  -- Admin
  bob   / bob-pw    -- Member
  carol / carol-pw  -- Admin, locked

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers and the gate's bcrypt work in a thread
pool. Plain :memory: DBs are per-connection and would present a blank schema
to each worker thread.

Environment variables must be set before any auth/core import because
get_settings() is cached on first use and auth.passwords reads the bcrypt
cost at import time.
"""

from __future__ import annotations

import base64
import os
import tempfile
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import -- see module docstring.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("SEED_ROLES", '["Admin", "Member"]')
os.environ.setdefault("IMAGE_UPLOAD_DIR", tempfile.mkdtemp(prefix="homecinema-images-"))

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.membership import MembershipService
from auth.store import UserStore
from catalog.models import Movie
from catalog.store import CatalogStore

ADMIN_ROLE_ID = 1
MEMBER_ROLE_ID = 2

PASSWORDS = {"alice": "alice-pw", "bob": "bob-pw", "carol": "carol-pw"}

SEED_MOVIES = [
    Movie(title="Alien", genre="Sci-Fi", release_date="1979-05-25", director="Ridley Scott", rating=5),
    Movie(title="Blade Runner", genre="Sci-Fi", release_date="1982-06-25", director="Ridley Scott", rating=5),
    Movie(title="Aliens", genre="Action", release_date="1986-07-18", director="James Cameron", rating=4),
    Movie(title="Heat", genre="Crime", release_date="1995-12-15", director="Michael Mann", rating=4),
]


def basic_auth(username: str, password: str) -> dict[str, str]:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, CatalogStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    catalog_url = f"sqlite:///file:test_catalog_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=auth_url), CatalogStore(db_url=catalog_url)


def _seed_users(store: UserStore) -> MembershipService:
    """Create roles Admin(1) and Member(2) plus alice, bob and carol."""
    store.ensure_roles(["Admin", "Member"])
    membership = MembershipService(store)
    membership.create_user("alice", "alice@example.com", PASSWORDS["alice"], [ADMIN_ROLE_ID])
    membership.create_user("bob", "bob@example.com", PASSWORDS["bob"], [MEMBER_ROLE_ID])
    carol = membership.create_user("carol", "carol@example.com", PASSWORDS["carol"], [ADMIN_ROLE_ID])
    membership.set_locked(carol.id, True)
    return membership


def _patch_lifespan(user_store: UserStore, catalog: CatalogStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the production databases.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.membership = MembershipService(user_store)
        app.state.catalog = catalog
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def membership(user_store: UserStore) -> MembershipService:
    """MembershipService over an in-memory store holding the standard accounts."""
    return _seed_users(user_store)


@pytest.fixture
def catalog() -> Generator[CatalogStore, None, None]:
    store = CatalogStore("sqlite:///:memory:")
    yield store
    store.close()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, dict[str, dict[str, str]]], None, None]:
    """Yield (client, headers) for API integration tests.

    headers maps each standard username to its Basic Authorization header.
    The TestClient uses the real FastAPI app, middleware stack and gate with
    a patched lifespan, so tests hit real route handlers against isolated
    in-memory stores.
    """
    user_store, catalog = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    _seed_users(user_store)
    for movie in SEED_MOVIES:
        catalog.create_movie(movie, number_of_stocks=2)

    app.router.lifespan_context = _patch_lifespan(user_store, catalog)
    headers = {name: basic_auth(name, pw) for name, pw in PASSWORDS.items()}

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, headers

    user_store.close()
    catalog.close()
