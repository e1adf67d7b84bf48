"""Master API router — mounts all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from reelforge.api.videos import router as videos_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(videos_router, prefix="/videos", tags=["Videos"])
