import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status

from notifier.dependencies import get_services, verify_token
from notifier.schemas.webhooks import (
    RepositoryCreateRequest,
    RepositoryResponse,
    WebhookEventResponse,
    WebhookSecretResponse,
)
from notifier.services import Services

logger = structlog.get_logger(__name__)

repositories_router = APIRouter(
    prefix="/api/repositories",
    tags=["repositories"],
    dependencies=[Depends(verify_token)],
)


@repositories_router.post(
    "",
    response_model=RepositoryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_repository(
    data: RepositoryCreateRequest,
    services: Services = Depends(get_services),
):
    async with services.session_factory() as db:
        user = await services.storage.get_user(db, data.user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"User {data.user_id} not found",
            )

        repository = await services.storage.add_repository(
            db,
            user_id=user.id,
            name=data.name,
            full_name=data.full_name,
            url=data.url,
            description=data.description,
            stars=data.stars,
            is_private=data.is_private,
        )

    notification = await services.notifications.notify_repository_added(
        repository, user
    )
    logger.info(
        "Repository added",
        repository_id=repository.id,
        user_id=user.id,
        notification=notification.value,
    )
    return RepositoryResponse.model_validate(repository)


@repositories_router.post(
    "/{repository_id}/webhook/enable",
    response_model=WebhookSecretResponse,
)
async def enable_webhook(
    repository_id: int,
    services: Services = Depends(get_services),
):
    async with services.session_factory() as db:
        repository = await services.storage.get_repository(db, repository_id)
        if repository is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Repository {repository_id} not found",
            )
        secret = await services.storage.enable_webhook(db, repository)

    return WebhookSecretResponse(webhook_secret=secret)


@repositories_router.post(
    "/{repository_id}/webhook/disable",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def disable_webhook(
    repository_id: int,
    services: Services = Depends(get_services),
):
    async with services.session_factory() as db:
        repository = await services.storage.get_repository(db, repository_id)
        if repository is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Repository {repository_id} not found",
            )
        await services.storage.disable_webhook(db, repository)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@repositories_router.get(
    "/{repository_id}/webhook/events",
    response_model=list[WebhookEventResponse],
)
async def list_webhook_events(
    repository_id: int,
    limit: int = 50,
    services: Services = Depends(get_services),
):
    async with services.session_factory() as db:
        repository = await services.storage.get_repository(db, repository_id)
        if repository is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Repository {repository_id} not found",
            )
        events = await services.storage.get_webhook_events(
            db, repository_id, limit=limit
        )

    return [WebhookEventResponse.model_validate(event) for event in events]
