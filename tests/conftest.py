"""Shared fixtures for the signed-sessions test suite."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from signed_sessions.config import Settings, override_settings
from signed_sessions.main import create_app
from signed_sessions.session import SessionContext, SessionMiddleware

from helpers import SECRET, Handler, RecordingStore, build_app


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def make_client(store):
    """Factory: ``make_client(handler, **options)`` -> TestClient with cookie jar."""

    def _make(handler: Handler | None = None, **options: Any) -> TestClient:
        options.setdefault("store", store)
        return TestClient(build_app(handler, **options), cookies={})

    return _make


@pytest.fixture
def make_context(store):
    """Factory for a SessionContext outside of a request."""

    def _make(scope: dict | None = None, **options: Any) -> SessionContext:
        options.setdefault("store", store)
        middleware = SessionMiddleware(lambda *args: None, secret=SECRET, **options)
        scope = scope or {"type": "http", "path": "/", "headers": [], "scheme": "http"}
        return SessionContext(scope, middleware.policy, [SECRET])

    return _make


# ── Reference application ─────────────────────────────────────────────────

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        session_secret="test-secret-key-for-sessions",
        environment="test",
    )


@pytest.fixture
def app(test_settings, store):
    override_settings(test_settings)
    return create_app(store=store)


@pytest.fixture
def client(app) -> TestClient:
    """TestClient with cookie persistence."""
    return TestClient(app, cookies={})
