import uuid

import structlog

from notifier.schemas.envelope import QueueEnvelope
from notifier.services.retry_handler import MessageRetryHandler
from notifier.utils.sqs import MESSAGE_TYPE, QueueConfigurationError, SQSQueueClient

logger = structlog.get_logger(__name__)


class QueueDispatcher:
    def __init__(self, queue: SQSQueueClient, retry_handler: MessageRetryHandler):
        self.queue = queue
        self.retry_handler = retry_handler

    async def send(self, envelope: QueueEnvelope) -> str:
        """Send an envelope to the queue and return its correlation id.

        A configuration error is raised as-is and never retried. Any other
        failure hands the message to the retry handler before re-raising.
        """
        self.queue.ensure_configured()

        correlation_id = str(uuid.uuid4())
        body = envelope.to_message()

        try:
            queue_message_id = await self.queue.send_message(
                body, attributes={"MessageType": MESSAGE_TYPE}
            )
        except QueueConfigurationError:
            raise
        except Exception as e:
            logger.error(
                "Error sending message to queue",
                correlation_id=correlation_id,
                queue_url=self.queue.queue_url,
                region=self.queue.region,
                message_type=MESSAGE_TYPE,
                event_type=envelope.event,
                repository_id=envelope.repository.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            self.retry_handler.add_to_retry_queue(correlation_id, body)
            raise

        logger.info(
            "Message sent to queue",
            correlation_id=correlation_id,
            queue_message_id=queue_message_id,
            event_type=envelope.event,
            repository_id=envelope.repository.id,
        )
        return correlation_id
