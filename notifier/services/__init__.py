from dataclasses import dataclass
from datetime import timedelta

from notifier.config import Settings
from notifier.database import SessionFactory, get_db
from notifier.services.consumer import QueueConsumer
from notifier.services.dispatcher import QueueDispatcher
from notifier.services.notifications import NotificationService, NotificationStatus
from notifier.services.password_reset import PasswordResetService
from notifier.services.retry_handler import MessageRetryHandler, RetryConfig
from notifier.services.storage import Storage
from notifier.utils.email import EmailClient
from notifier.utils.sqs import SQSQueueClient


@dataclass
class Services:
    session_factory: SessionFactory
    storage: Storage
    queue: SQSQueueClient
    retry_handler: MessageRetryHandler
    dispatcher: QueueDispatcher
    email_client: EmailClient
    notifications: NotificationService
    password_reset: PasswordResetService
    consumer: QueueConsumer


def build_services(
    settings: Settings, session_factory: SessionFactory = get_db
) -> Services:
    storage = Storage()
    queue = SQSQueueClient(
        queue_url=settings.aws_queue_url,
        region=settings.aws_region,
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
    )
    retry_handler = MessageRetryHandler(
        queue,
        RetryConfig(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
        ),
    )
    dispatcher = QueueDispatcher(queue, retry_handler)
    email_client = EmailClient(
        region=settings.aws_region,
        notification_email=settings.notification_email,
        from_email=settings.from_email,
        app_url=settings.app_url,
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
    )

    return Services(
        session_factory=session_factory,
        storage=storage,
        queue=queue,
        retry_handler=retry_handler,
        dispatcher=dispatcher,
        email_client=email_client,
        notifications=NotificationService(dispatcher, email_client),
        password_reset=PasswordResetService(
            storage,
            email_client,
            token_ttl=timedelta(seconds=settings.password_reset_token_ttl),
        ),
        consumer=QueueConsumer(
            queue,
            storage,
            session_factory,
            max_messages=settings.consumer_max_messages,
            wait_seconds=settings.consumer_wait_seconds,
            error_backoff=settings.consumer_error_backoff,
        ),
    )


__all__ = [
    "build_services",
    "MessageRetryHandler",
    "NotificationService",
    "NotificationStatus",
    "PasswordResetService",
    "QueueConsumer",
    "QueueDispatcher",
    "RetryConfig",
    "Services",
    "Storage",
]
