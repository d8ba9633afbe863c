"""Main router for API v1."""

from fastapi import APIRouter

from deploybot.api.v1 import health, webhooks

router = APIRouter(prefix="/v1")

# Include sub-routers
router.include_router(health.router, tags=["health"])
router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
