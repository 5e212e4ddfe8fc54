"""FastAPI dependency injection: session access and auth."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from .session import Session


def get_session(request: Request) -> Session:
    """Get the session from request state.

    No session is attached while the store is disconnected.
    """
    session = getattr(request.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail={"error": "Session unavailable"})
    return session


def require_user(request: Request) -> dict[str, Any]:
    """Require a logged-in user in the session."""
    user = get_session(request).get("user")
    if not user:
        raise HTTPException(status_code=401, detail={"error": "Not authenticated"})
    return user


async def destroy_session(request: Request) -> None:
    """Delete the session from the store and detach it from the request."""
    await get_session(request).destroy()
