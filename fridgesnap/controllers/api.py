from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from . import debug, recipes

router = APIRouter()
router.include_router(recipes.router)
# premium override used to exercise both tiers; disabled without DEBUG_SECRET
router.include_router(debug.router)


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "FridgeSnap backend running"
