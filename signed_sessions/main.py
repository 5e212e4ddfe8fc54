"""FastAPI reference application for signed-sessions.

Wires SessionMiddleware from environment settings and exposes a few
endpoints that exercise the session lifecycle.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from .config import check_store_advisory, get_settings, middleware_options
from .routes import health, logout, me, session_ep, views
from .session import InMemoryStore, SessionMiddleware, SessionStore

logger = logging.getLogger(__name__)


def create_app(*, store: SessionStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Custom session store (default: InMemoryStore).
    """
    app = FastAPI(title="Signed Sessions")
    s = get_settings()

    # Server-side sessions
    store = store or InMemoryStore()
    check_store_advisory(s, store)
    app.add_middleware(SessionMiddleware, store=store, **middleware_options(s))
    app.state.session_store = store

    # Routes
    app.include_router(health.router)
    app.include_router(views.router)
    app.include_router(session_ep.router)
    app.include_router(me.router)
    app.include_router(logout.router)

    return app
