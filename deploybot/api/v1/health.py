"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from deploybot import __version__
from deploybot.config import settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Liveness plus the receiver settings an operator usually checks first."""

    status: str = "healthy"
    version: str
    environment: str
    lock_ref_prefix: str
    signature_verification: bool
    github_token_configured: bool
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(
        version=__version__,
        environment=settings.app_env,
        lock_ref_prefix=settings.lock_ref_prefix,
        signature_verification=bool(settings.webhook_secret),
        github_token_configured=bool(settings.github_token),
        timestamp=datetime.now(timezone.utc),
    )
