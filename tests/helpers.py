"""Test helpers shared across modules."""

from __future__ import annotations

from typing import Any, Awaitable, Callable
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from signed_sessions.session import InMemoryStore, SessionMiddleware
from signed_sessions.session.signing import sign

SECRET = "keyboard cat"

Handler = Callable[[Request], Awaitable[Any]]


class RecordingStore(InMemoryStore):
    """InMemoryStore that records every call, in order."""

    def __init__(self, events: list | None = None) -> None:
        super().__init__()
        self.events = events if events is not None else []

    def calls(self, name: str) -> int:
        return sum(1 for e in self.events if e[0] == name)

    async def get(self, session_id):
        self.events.append(("get", session_id))
        return await super().get(session_id)

    async def set(self, session_id, record):
        self.events.append(("set", session_id))
        await super().set(session_id, record)

    async def destroy(self, session_id):
        self.events.append(("destroy", session_id))
        await super().destroy(session_id)

    async def touch(self, session_id, record):
        self.events.append(("touch", session_id))
        await super().touch(session_id, record)


def session_cookie(session_id: str, secret: str = SECRET, name: str = "connect.sid") -> str:
    """Cookie header value carrying a signed session id."""
    return f"{name}={quote(sign(session_id, secret), safe='')}"


def build_app(handler: Handler | None = None, *, secret: Any = SECRET, **options: Any) -> FastAPI:
    """Minimal app: every path runs ``handler`` behind SessionMiddleware."""
    app = FastAPI()

    @app.api_route("/{path:path}", methods=["GET", "POST"])
    async def catch_all(request: Request):
        result = await handler(request) if handler else None
        if isinstance(result, Response):
            return result
        return PlainTextResponse("ok" if result is None else str(result))

    app.add_middleware(SessionMiddleware, secret=secret, **options)
    return app
