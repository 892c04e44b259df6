"""
tests/conftest.py -- Shared test fixtures for the account service tests.

This module provides:
  - RecordingMailer: in-memory Mailer that records every message it is given
  - _make_test_store(): isolated named shared-memory SQLite store
  - _patch_lifespan(): wires a test store and services into app.state
  - settings / store / mailer / notifier / auth_service / account_service:
    per-test objects for service-level tests
  - run: runs a coroutine to completion and drains the notifier afterwards
  - api_client: TestClient over the real app with isolated state

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API client because TestClient runs route handlers on another thread.
Plain :memory: DBs are per-connection and would present a blank schema to
each thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any api/ import so get_settings()
auto-generates the token secrets instead of raising ValueError.
"""

from __future__ import annotations

import asyncio
import itertools
import os
import threading
from collections.abc import Generator
from contextlib import asynccontextmanager

# Set DEBUG before any api/auth/core import so get_settings() can
# auto-generate the token secrets in dev mode.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.account import AccountService
from auth.notifier import Notifier
from auth.service import AuthService
from auth.store import UserStore
from core.config import Settings

# Valid under the password policy.
STRONG_PASSWORD = "Sup3r!Secret"

_db_counter = itertools.count()


# ---------------------------------------------------------------------------
# Mailer double
# ---------------------------------------------------------------------------


class RecordingMailer:
    """Mailer that keeps (recipient, subject, html) tuples instead of sending.

    Sends happen on the app's event loop, which under TestClient is another
    thread, so readers wait on a condition rather than checking the list once.
    """

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = fail
        self._cond = threading.Condition()

    async def send(self, recipient: str, subject: str, html: str) -> None:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        with self._cond:
            self.sent.append((recipient, subject, html))
            self._cond.notify_all()

    def wait_for(self, recipient: str, count: int = 1, timeout: float = 2.0) -> list[tuple[str, str, str]]:
        """Block until `count` messages for `recipient` exist and return them."""

        def _matching() -> list[tuple[str, str, str]]:
            return [m for m in self.sent if m[0] == recipient]

        with self._cond:
            self._cond.wait_for(lambda: len(_matching()) >= count, timeout=timeout)
            return _matching()


# ---------------------------------------------------------------------------
# Store / settings helpers
# ---------------------------------------------------------------------------


def _make_settings(**overrides) -> Settings:
    # bcrypt's minimum cost keeps the suite fast.
    values = {"debug": True, "bcrypt_rounds": 4}
    values.update(overrides)
    return Settings(**values)


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'svc3').
    """
    return UserStore(db_url=f"sqlite:///file:test_accounts_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store: UserStore, settings: Settings, mailer: RecordingMailer):
    """Return an async context manager that replaces the real lifespan.

    Builds the notifier and services around the test store so routes hit
    isolated state and outgoing mail is recorded, never sent.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = store
        app.state.notifier = Notifier(mailer, settings.app_name)
        app.state.auth_service = AuthService(store, settings, app.state.notifier)
        app.state.account_service = AccountService(store, settings, app.state.notifier)
        yield
        await app.state.notifier.drain()

    return test_lifespan


# ---------------------------------------------------------------------------
# Service-level fixtures -- fresh state per test
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return _make_settings()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    user_store = _make_test_store(f"svc{next(_db_counter)}")
    yield user_store
    user_store.close()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def notifier(mailer: RecordingMailer, settings: Settings) -> Notifier:
    return Notifier(mailer, settings.app_name)


@pytest.fixture
def auth_service(store: UserStore, settings: Settings, notifier: Notifier) -> AuthService:
    return AuthService(store, settings, notifier)


@pytest.fixture
def account_service(store: UserStore, settings: Settings, notifier: Notifier) -> AccountService:
    return AccountService(store, settings, notifier)


@pytest.fixture
def run(notifier: Notifier):
    """Return a runner that awaits a coroutine, then every email it dispatched.

    asyncio.run() cancels leftover tasks on exit, so background sends must be
    drained inside the same loop.
    """

    def _run(coro):
        async def _main():
            try:
                return await coro
            finally:
                await notifier.drain()

        return asyncio.run(_main())

    return _run


# ---------------------------------------------------------------------------
# Module-scoped API client -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserStore, RecordingMailer], None, None]:
    """Yield (client, store, mailer) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers and exception handlers but use an isolated
    in-memory store. Tests read OTP codes straight from the store.
    """
    user_store = _make_test_store(f"api{next(_db_counter)}")
    recording = RecordingMailer()

    app.router.lifespan_context = _patch_lifespan(user_store, _make_settings(), recording)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store, recording

    user_store.close()
