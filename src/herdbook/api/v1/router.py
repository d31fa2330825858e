"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.herdbook.api.v1 import animals, feed, iot, tasks

router = APIRouter()

router.include_router(animals.router)
router.include_router(feed.router)
router.include_router(iot.router)
router.include_router(tasks.router)
