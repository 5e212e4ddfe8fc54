"""POST /logout — Destroy session."""

import logging

from fastapi import APIRouter, Request

from ..dependencies import destroy_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/logout")
async def logout(request: Request):
    await destroy_session(request)
    logger.info("Session destroyed")
    return {"success": True}
