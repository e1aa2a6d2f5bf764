import asyncio
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from notifier.database import SessionFactory
from notifier.models import Repository, User
from notifier.services import Services
from notifier.services.consumer import QueueConsumer
from notifier.services.dispatcher import QueueDispatcher
from notifier.services.notifications import NotificationService
from notifier.services.password_reset import PasswordResetService
from notifier.services.retry_handler import MessageRetryHandler, RetryConfig
from notifier.services.storage import Storage
from notifier.utils.email import EmailClient
from notifier.utils.sqs import QueueConfigurationError, ReceivedMessage

TEST_ADMIN_TOKEN = "test_admin_token"
QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/repository-events"


class FakeQueue:
    """In-memory stand-in for SQSQueueClient.

    ``fail_sends`` is the number of leading sends that raise; -1 fails every send.
    ``batches`` are returned (or raised) by successive receive calls.
    """

    def __init__(self, fail_sends: int = 0, queue_url: str | None = QUEUE_URL):
        self.queue_url = queue_url
        self.region = "us-east-1"
        self.fail_sends = fail_sends
        self.send_attempts = 0
        self.sent: list[tuple[dict[str, Any], dict[str, Any]]] = []
        self.batches: list[list[ReceivedMessage] | Exception] = []
        self.receive_calls = 0
        self.deleted: list[str] = []
        self.delete_error: Exception | None = None

    def ensure_configured(self) -> str:
        if not self.queue_url:
            raise QueueConfigurationError("AWS_QUEUE_URL is not configured")
        return self.queue_url

    async def send_message(
        self, body: dict[str, Any], attributes: dict[str, Any] | None = None
    ) -> str:
        self.ensure_configured()
        self.send_attempts += 1
        if self.fail_sends < 0 or self.send_attempts <= self.fail_sends:
            raise ConnectionError("queue endpoint unreachable")
        self.sent.append((body, attributes or {}))
        return f"sqs-{len(self.sent)}"

    async def receive_messages(
        self, max_messages: int = 10, wait_seconds: int = 20
    ) -> list[ReceivedMessage]:
        self.receive_calls += 1
        await asyncio.sleep(0)
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch

    async def delete_message(self, receipt_handle: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(receipt_handle)


class RecordingSleep:
    """Replacement for asyncio.sleep that records delays and returns at once."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def create_mock_get_db(mock_session):
    @asynccontextmanager
    async def mock_get_db():
        yield mock_session

    return mock_get_db


def make_user(user_id: int = 5, username: str = "octocat@example.com") -> User:
    return User(id=user_id, username=username, password="hashed")


def make_repository(
    repository_id: int = 1,
    webhook_secret: str | None = "test_webhook_secret",
    webhook_enabled: bool = True,
) -> Repository:
    return Repository(
        id=repository_id,
        user_id=5,
        name="hello-world",
        full_name="octocat/hello-world",
        url="https://github.com/octocat/hello-world",
        description="My first repository",
        stars=0,
        is_private=False,
        webhook_secret=webhook_secret,
        webhook_enabled=webhook_enabled,
    )


def make_email_client() -> MagicMock:
    email_client = MagicMock(spec=EmailClient)
    email_client.send_event_notification = AsyncMock(return_value=True)
    email_client.send_password_reset_email = AsyncMock(return_value=True)
    return email_client


def make_services(
    session_factory: SessionFactory,
    storage: Storage | None = None,
    queue: FakeQueue | None = None,
    email_client: Any | None = None,
    retry_config: RetryConfig | None = None,
    retry_sleep: Any = asyncio.sleep,
) -> Services:
    storage = storage or Storage()
    queue = queue or FakeQueue()
    email_client = email_client or make_email_client()
    retry_handler = MessageRetryHandler(
        queue, retry_config or RetryConfig(), sleep=retry_sleep
    )
    dispatcher = QueueDispatcher(queue, retry_handler)

    return Services(
        session_factory=session_factory,
        storage=storage,
        queue=queue,
        retry_handler=retry_handler,
        dispatcher=dispatcher,
        email_client=email_client,
        notifications=NotificationService(dispatcher, email_client),
        password_reset=PasswordResetService(storage, email_client),
        consumer=QueueConsumer(queue, storage, session_factory, error_backoff=0),
    )
