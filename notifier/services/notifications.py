from enum import Enum
from typing import Any

import structlog

from notifier.models import Repository, User
from notifier.schemas.envelope import (
    EventType,
    QueueEnvelope,
    RepositorySummary,
    UserSummary,
)
from notifier.services.dispatcher import QueueDispatcher
from notifier.utils.email import EmailClient
from notifier.utils.sqs import QueueConfigurationError
from notifier.utils.templates import format_message

logger = structlog.get_logger(__name__)


class NotificationStatus(Enum):
    QUEUED = "queued"
    RETRYING = "retrying"
    NOT_CONFIGURED = "not_configured"


def repository_variables(repository: Repository) -> dict[str, Any]:
    return {
        "id": repository.id,
        "name": repository.name,
        "full_name": repository.full_name,
        "url": repository.url,
        "description": repository.description,
    }


class NotificationService:
    """Formats repository events and fans them out to the queue and email."""

    def __init__(self, dispatcher: QueueDispatcher, email_client: EmailClient):
        self.dispatcher = dispatcher
        self.email_client = email_client

    async def notify(
        self,
        event: str,
        repository: Repository,
        sender: str | None = None,
        action: str | None = None,
        user: User | None = None,
    ) -> NotificationStatus:
        variables: dict[str, Any] = {
            "repository": repository_variables(repository),
            "sender": sender,
            "action": action,
        }
        if user is not None:
            variables["user"] = {"id": user.id, "username": user.username}

        message = format_message(event, variables)
        envelope = QueueEnvelope(
            event=event,
            message=message,
            repository=RepositorySummary.from_model(repository),
            sender=sender,
            action=action,
            user=UserSummary.from_model(user) if user is not None else None,
        )

        status = await self._dispatch(envelope)
        await self.email_client.send_event_notification(message, repository, event)
        return status

    async def notify_repository_added(
        self, repository: Repository, user: User
    ) -> NotificationStatus:
        return await self.notify(
            EventType.REPOSITORY_ADDED.value, repository, user=user
        )

    async def _dispatch(self, envelope: QueueEnvelope) -> NotificationStatus:
        try:
            await self.dispatcher.send(envelope)
        except QueueConfigurationError as e:
            logger.error(
                "Queue is not configured, notification not sent",
                event_type=envelope.event,
                repository_id=envelope.repository.id,
                error=str(e),
            )
            return NotificationStatus.NOT_CONFIGURED
        except Exception:
            logger.warning(
                "Notification dispatch failed, retry scheduled",
                event_type=envelope.event,
                repository_id=envelope.repository.id,
            )
            return NotificationStatus.RETRYING
        return NotificationStatus.QUEUED
