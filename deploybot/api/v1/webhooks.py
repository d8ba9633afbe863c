"""GitHub webhook endpoint."""

import json
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request, status
from pydantic import BaseModel

from deploybot.api.deps import PlatformFactory, PlatformFactoryDep, WebhookSecretDep
from deploybot.config import settings
from deploybot.core.exceptions import ValidationError
from deploybot.core.orchestrator import get_orchestrator
from deploybot.core.webhooks import parse_webhook, verify_signature
from deploybot.models.events import InboundEvent, RepositoryRef
from deploybot.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


class WebhookResponse(BaseModel):
    """Acknowledgement of a webhook delivery."""

    status: str
    event: str
    kind: str | None = None


async def process_event(
    factory: PlatformFactory, repository: RepositoryRef, event: InboundEvent
) -> None:
    """Background task to run the orchestrator for one event."""
    platform = factory(repository)
    try:
        await get_orchestrator(platform).handle(event)
    except Exception as e:
        # Left for redelivery
        logger.error(
            "webhooks.processing_failed",
            repository=repository.full_name,
            kind=event.kind,
            error=str(e),
            exc_info=True,
        )
    finally:
        await platform.aclose()


@router.post(
    "",
    response_model=WebhookResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Receive a GitHub webhook",
    description="Verify and acknowledge a delivery. Processing continues in background.",
)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    factory: PlatformFactoryDep,
    secret: WebhookSecretDep,
    x_github_event: Annotated[str, Header()],
    x_hub_signature_256: Annotated[str | None, Header()] = None,
) -> WebhookResponse:
    """Accept a delivery and schedule the matching lifecycle transition."""
    body = await request.body()

    if secret and not verify_signature(secret, body, x_hub_signature_256):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body is not valid JSON",
        ) from e
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body must be a JSON object",
        )

    try:
        parsed = parse_webhook(x_github_event, payload, settings.lock_ref_prefix)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        ) from e

    if parsed is None:
        logger.info("webhooks.ignored", github_event=x_github_event)
        return WebhookResponse(status="ignored", event=x_github_event)

    repository, event = parsed
    background_tasks.add_task(process_event, factory, repository, event)

    return WebhookResponse(status="accepted", event=x_github_event, kind=event.kind)
