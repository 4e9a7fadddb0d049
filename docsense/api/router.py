"""
Main API router. Mounts all sub-routers.
"""

from fastapi import APIRouter

from .documents import documents_router
from .search import search_router

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok", "service": "docsense"}


router.include_router(documents_router)
router.include_router(search_router)
