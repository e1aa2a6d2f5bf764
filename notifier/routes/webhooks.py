import json
import uuid

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from notifier.dependencies import get_services
from notifier.models import WebhookEvent
from notifier.schemas.webhooks import RetryQueueStatus
from notifier.services import Services
from notifier.utils.signature import verify_signature

logger = structlog.get_logger(__name__)

webhooks_router = APIRouter(prefix="/api", tags=["webhooks"])


@webhooks_router.post(
    "/webhook/{repository_id}",
    status_code=status.HTTP_200_OK,
)
async def receive_github_webhook(
    repository_id: int,
    request: Request,
    x_github_event: str | None = Header(None, description="GitHub event name"),
    x_hub_signature_256: str | None = Header(
        None, description="GitHub webhook signature"
    ),
    services: Services = Depends(get_services),
):
    body = await request.body()

    async with services.session_factory() as db:
        repository = await services.storage.get_repository(db, repository_id)

    if (
        repository is None
        or not repository.webhook_enabled
        or not repository.webhook_secret
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Repository not found or webhook not enabled.",
        )

    if not verify_signature(repository.webhook_secret, x_hub_signature_256, body):
        logger.warning(
            "Rejected webhook with invalid signature",
            repository_id=repository_id,
            has_signature=bool(x_hub_signature_256),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature.",
        )

    if not x_github_event:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-GitHub-Event header.",
        )

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload."
        )

    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload."
        )

    if x_github_event == "ping":
        return {"message": "pong"}

    sender = payload.get("sender")
    event = WebhookEvent(
        id=uuid.uuid4(),
        repository_id=repository.id,
        type=x_github_event,
        action=payload.get("action"),
        sender=sender.get("login") if isinstance(sender, dict) else None,
        payload=body.decode("utf-8", errors="replace"),
    )

    try:
        async with services.session_factory() as db:
            await services.storage.add_webhook_event(db, event)
    except Exception as e:
        logger.error(
            "Database error",
            error=str(e),
            repository_id=repository_id,
            event_type=x_github_event,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error occurred while processing webhook.",
        )

    notification = await services.notifications.notify(
        event.type,
        repository,
        sender=event.sender,
        action=event.action,
    )

    logger.info(
        "Webhook received",
        event_id=str(event.id),
        repository_id=repository.id,
        event_type=event.type,
        action=event.action,
        notification=notification.value,
    )

    return {
        "message": "Webhook received",
        "event_id": str(event.id),
        "notification": notification.value,
    }


@webhooks_router.get(
    "/message-retry-status",
    response_model=RetryQueueStatus,
)
async def get_message_retry_status(services: Services = Depends(get_services)):
    return services.retry_handler.get_status()
