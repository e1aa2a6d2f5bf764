import asyncio

import structlog
from pydantic import ValidationError

from notifier.database import SessionFactory
from notifier.models import Repository
from notifier.schemas.envelope import EventType, QueueEnvelope
from notifier.services.storage import Storage
from notifier.utils.sqs import ReceivedMessage, SQSQueueClient

logger = structlog.get_logger(__name__)


class QueueConsumer:
    """Long-poll worker that drains the event queue.

    Delivery is at-least-once: a message is deleted only after it has been
    handled, so every handler must tolerate seeing the same envelope again.
    """

    def __init__(
        self,
        queue: SQSQueueClient,
        storage: Storage,
        session_factory: SessionFactory,
        max_messages: int = 10,
        wait_seconds: int = 20,
        error_backoff: float = 5.0,
    ):
        self.queue = queue
        self.storage = storage
        self.session_factory = session_factory
        self.max_messages = max_messages
        self.wait_seconds = wait_seconds
        self.error_backoff = error_backoff
        self._stop_event = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        self._stop_event.set()

    async def run(self, max_iterations: int | None = None) -> None:
        logger.info(
            "Starting queue consumer",
            queue_url=self.queue.queue_url,
            max_messages=self.max_messages,
            wait_seconds=self.wait_seconds,
        )
        iterations = 0

        while not self._stop_event.is_set():
            if max_iterations is not None and iterations >= max_iterations:
                break
            iterations += 1

            try:
                messages = await self.queue.receive_messages(
                    max_messages=self.max_messages,
                    wait_seconds=self.wait_seconds,
                )
            except Exception as e:
                logger.error(
                    "Error polling messages",
                    error=str(e),
                    error_type=type(e).__name__,
                    backoff=self.error_backoff,
                )
                await self._wait(self.error_backoff)
                continue

            for message in messages:
                try:
                    await self.process_message(message)
                except Exception as e:
                    logger.error(
                        "Unexpected error handling message",
                        message_id=message.message_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )

        logger.info("Queue consumer stopped", iterations=iterations)

    async def _wait(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except TimeoutError:
            pass

    async def process_message(self, message: ReceivedMessage) -> bool:
        """Handle one message; returns True when it was acknowledged."""
        if not message.body:
            logger.warning("Skipping message without body", message_id=message.message_id)
            return False

        try:
            envelope = QueueEnvelope.model_validate_json(message.body)
        except ValidationError as e:
            logger.error(
                "Malformed queue message",
                message_id=message.message_id,
                error=str(e),
            )
            return False

        try:
            async with self.session_factory() as db:
                repository = await self.storage.get_repository(
                    db, envelope.repository.id
                )

            if repository is None:
                logger.warning(
                    "Repository not found for queued event",
                    message_id=message.message_id,
                    repository_id=envelope.repository.id,
                    event_type=envelope.event,
                )
                return False

            await self.handle_event(envelope, repository)
            await self.queue.delete_message(message.receipt_handle)
        except Exception as e:
            logger.error(
                "Error processing message",
                message_id=message.message_id,
                event_type=envelope.event,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        logger.debug("Message processed", message_id=message.message_id)
        return True

    async def handle_event(
        self, envelope: QueueEnvelope, repository: Repository
    ) -> None:
        event_type = envelope.event_type
        if event_type is None:
            logger.warning(
                "Unhandled event type",
                event_type=envelope.event,
                repository_id=repository.id,
            )
            return

        match event_type:
            case EventType.REPOSITORY_ADDED:
                await self.handle_repository_added(envelope, repository)
            case EventType.PUSH:
                await self.handle_push(envelope, repository)
            case EventType.PULL_REQUEST:
                await self.handle_pull_request(envelope, repository)

    async def handle_repository_added(
        self, envelope: QueueEnvelope, repository: Repository
    ) -> None:
        logger.info(
            "New repository added",
            repository_id=repository.id,
            repository=repository.full_name,
            user=envelope.user.username if envelope.user else None,
            message=envelope.message,
        )

    async def handle_push(self, envelope: QueueEnvelope, repository: Repository) -> None:
        logger.info(
            "Push event received",
            repository_id=repository.id,
            repository=repository.full_name,
            sender=envelope.sender,
            message=envelope.message,
        )

    async def handle_pull_request(
        self, envelope: QueueEnvelope, repository: Repository
    ) -> None:
        logger.info(
            "Pull request event received",
            repository_id=repository.id,
            repository=repository.full_name,
            action=envelope.action,
            sender=envelope.sender,
            message=envelope.message,
        )
