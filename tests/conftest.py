"""
tests/conftest.py -- Shared test fixtures for BloodLink tests.

This module provides:
  - make_test_stores(): isolated in-memory DBs for users + audit log
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: module-scoped TestClient plus admin/staff/donor accounts and tokens
  - stores: function-scoped stores for unit tests that do not need HTTP

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment must be set before any auth/core import: get_settings() refuses
to build Settings without SECRET_KEY, and the limiter reads its switch at
import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set configuration before any auth/core import.
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123456789abcdef")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("DATABASE_URL", "sqlite:///file:bloodlink_test_default?mode=memory&cache=shared&uri=true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from audit.store import AuditLog
from auth.models import Role, User
from auth.passwords import hash_password
from auth.store import UserStore
from auth.tokens import create_access_token

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_stores(db_suffix: str) -> tuple[UserStore, AuditLog]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules and
                   tests don't share state.
    """
    url = f"sqlite:///file:test_bloodlink_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), AuditLog(db_url=url)


def _patch_lifespan(user_store: UserStore, audit_log: AuditLog):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.audit_log = audit_log
        yield

    return test_lifespan


def seed_user(store: UserStore, email: str, role: Role, password: str = "password123", name: str = "Test User") -> int:
    return store.create_user(User(email=email, name=name, role=role, hashed_password=hash_password(password)))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    user_store: UserStore
    audit_log: AuditLog
    admin_id: int
    admin_token: str
    staff_id: int
    staff_token: str
    donor_id: int
    donor_token: str


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers, dependencies and exception handlers but use
    isolated in-memory stores. One admin, one staff and one donor account are
    seeded with password "password123".
    """
    user_store, audit_log = make_test_stores(request.module.__name__.replace(".", "_"))

    admin_id = seed_user(user_store, "admin@bloodlink.test", Role.ADMIN, name="Admin")
    staff_id = seed_user(user_store, "staff@bloodlink.test", Role.STAFF, name="Staff")
    donor_id = seed_user(user_store, "donor@bloodlink.test", Role.DONOR, name="Donor")

    app.router.lifespan_context = _patch_lifespan(user_store, audit_log)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            user_store=user_store,
            audit_log=audit_log,
            admin_id=admin_id,
            admin_token=create_access_token(admin_id),
            staff_id=staff_id,
            staff_token=create_access_token(staff_id),
            donor_id=donor_id,
            donor_token=create_access_token(donor_id),
        )

    audit_log.close()
    user_store.close()


@pytest.fixture
def stores() -> Generator[tuple[UserStore, AuditLog], None, None]:
    """Fresh, empty stores for a single test."""
    user_store, audit_log = make_test_stores(uuid.uuid4().hex)
    yield user_store, audit_log
    audit_log.close()
    user_store.close()
