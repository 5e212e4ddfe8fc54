"""GET /health — Liveness check."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    attached = getattr(request.state, "session", None) is not None
    return {
        "status": "ok",
        "session": "attached" if attached else "unavailable",
    }
