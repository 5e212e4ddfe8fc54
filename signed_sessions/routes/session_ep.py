"""POST /login, /touch, /reload — Explicit session operations."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import get_session
from ..session import Session

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    user: str


@router.post("/login")
async def login(body: LoginRequest, session: Session = Depends(get_session)):
    # New identifier on privilege change (session fixation).
    session = await session.regenerate()
    session["user"] = {"name": body.user}
    logger.info("Session %s started for %s", session.id, body.user)
    return {"success": True}


@router.post("/touch")
async def touch(session: Session = Depends(get_session)):
    await session.touch()
    return {"expires": session.cookie.expires.isoformat() if session.cookie.expires else None}


@router.post("/reload")
async def reload(session: Session = Depends(get_session)):
    session = await session.reload()
    return dict(session)
