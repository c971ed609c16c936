"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from progresssync.server.api import document, health

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(document.router)
