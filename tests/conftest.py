"""
tests/conftest.py -- Shared test fixtures for the SSO core.

This module provides:
  - storage: a fresh in-memory Storage per test
  - fail_statements: make chosen SQL statements on that storage fail
  - issuer / gate / auth_service / permission_service / app_service:
    the real service graph wired onto that storage
  - api_client: TestClient with a patched lifespan and an isolated database

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from api.main import app, attach_services
from auth.gate import AuthorizationGate
from auth.tokens import TokenIssuer
from services.apps import AppService
from services.auth import AuthService
from services.permissions import PermissionService
from storage.store import Storage

TOKEN_TTL = timedelta(hours=1)


# ---------------------------------------------------------------------------
# Unit-level fixtures -- one fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def storage() -> Generator[Storage, None, None]:
    s = Storage("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def fail_statements(storage: Storage):
    """Register SQL prefixes whose statements fail as driver errors.

    Usage: fail_statements("DELETE FROM apps"). Matching is case-insensitive
    on the start of the statement text.
    """
    prefixes: list[str] = []

    def _raise(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith(tuple(prefixes)):
            raise OperationalError(statement, parameters, RuntimeError("disk I/O error"))

    event.listen(storage.engine, "before_cursor_execute", _raise)
    yield lambda prefix: prefixes.append(prefix.upper())
    event.remove(storage.engine, "before_cursor_execute", _raise)


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer()


@pytest.fixture
def gate(storage: Storage, issuer: TokenIssuer) -> AuthorizationGate:
    return AuthorizationGate(apps=storage, ledger=storage, issuer=issuer)


@pytest.fixture
def auth_service(storage: Storage, issuer: TokenIssuer) -> AuthService:
    return AuthService(users=storage, apps=storage, ledger=storage, issuer=issuer, token_ttl=TOKEN_TTL)


@pytest.fixture
def permission_service(storage: Storage, gate: AuthorizationGate) -> PermissionService:
    return PermissionService(users=storage, apps=storage, ledger=storage, gate=gate)


@pytest.fixture
def app_service(storage: Storage, gate: AuthorizationGate) -> AppService:
    return AppService(users=storage, apps=storage, ledger=storage, gate=gate, uow=storage)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(storage: Storage):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-created test storage into app.state so TestClient routes
    see an isolated database rather than the configured one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        attach_services(app, storage, TOKEN_TTL)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient backed by a module-private shared-memory database."""
    db_name = request.module.__name__.replace(".", "_")
    storage = Storage(f"sqlite:///file:sso_{db_name}?mode=memory&cache=shared&uri=true")
    app.router.lifespan_context = _patch_lifespan(storage)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    storage.close()
