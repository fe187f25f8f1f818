from fastapi import APIRouter

from app.api.channels import router as channels_router
from app.api.dm import router as dm_router
from app.api.friends import router as friends_router
from app.api.messages import router as messages_router

router = APIRouter()

router.include_router(channels_router)
router.include_router(messages_router)
router.include_router(dm_router)
router.include_router(friends_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the Huddle API"}
