from fastapi import APIRouter

from app.api.auth import router as auth_router
from app.api.gifs import router as gifs_router
from app.api.media import router as media_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(media_router)
router.include_router(gifs_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the Huddle API"}
