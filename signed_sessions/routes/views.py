"""GET /views — Count page views per session."""

from fastapi import APIRouter, Depends

from ..dependencies import get_session
from ..session import Session

router = APIRouter()


@router.get("/views")
async def count_views(session: Session = Depends(get_session)):
    session["views"] = session.get("views", 0) + 1
    return {"views": session["views"]}
