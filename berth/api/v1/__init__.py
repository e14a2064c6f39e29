"""API v1 router."""

from fastapi import APIRouter

from berth.api.v1.containers import router as containers_router
from berth.api.v1.mounts import router as mounts_router
from berth.api.v1.recover import router as recover_router

router = APIRouter()

router.include_router(containers_router, prefix="/containers", tags=["containers"])
router.include_router(recover_router, tags=["recovery"])
router.include_router(mounts_router, tags=["mounts"])
