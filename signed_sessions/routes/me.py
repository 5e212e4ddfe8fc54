"""GET /me — Return the logged-in user from the session."""

from fastapi import APIRouter, Depends

from ..dependencies import require_user

router = APIRouter()


@router.get("/me")
async def get_me(user: dict = Depends(require_user)):
    return user
