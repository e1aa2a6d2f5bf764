import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog

from notifier.schemas.webhooks import RetryQueueEntry, RetryQueueStatus
from notifier.utils.sqs import MESSAGE_TYPE

logger = structlog.get_logger(__name__)


class MessageSender(Protocol):
    async def send_message(
        self,
        body: dict[str, Any],
        attributes: dict[str, str | int] | None = None,
    ) -> str | None: ...


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    jitter: float = 1.0


@dataclass
class RetryMessage:
    message: dict[str, Any]
    attempt: int = 1
    last_attempt: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MessageRetryHandler:
    """Re-sends queue messages whose first delivery failed.

    Each pending message is owned by one asyncio task that sleeps for the
    backoff delay, re-sends, and either finishes or goes around again. The
    table is only touched from the event loop, so it needs no lock.
    """

    def __init__(
        self,
        queue: MessageSender,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        random_fn: Callable[[], float] = random.random,
    ):
        self.queue = queue
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._random = random_fn
        self._retry_queue: dict[str, RetryMessage] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def calculate_backoff(self, attempt: int) -> float:
        delay = min(
            self.config.base_delay * (2 ** (attempt - 1)),
            self.config.max_delay,
        )
        return delay + self._random() * self.config.jitter

    def add_to_retry_queue(self, message_id: str, message: dict[str, Any]) -> None:
        self._retry_queue[message_id] = RetryMessage(message=message)
        logger.info(
            "Message added to retry queue",
            message_id=message_id,
            max_attempts=self.config.max_attempts,
        )
        self._schedule_retry(message_id)

    def _schedule_retry(self, message_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self._retry(message_id))
        self._tasks[message_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(message_id, None))

    async def _retry(self, message_id: str) -> None:
        while True:
            retry_message = self._retry_queue.get(message_id)
            if retry_message is None:
                return

            backoff = self.calculate_backoff(retry_message.attempt)
            logger.debug(
                "Scheduling retry",
                message_id=message_id,
                attempt=retry_message.attempt,
                delay=round(backoff, 3),
            )
            await self._sleep(backoff)

            try:
                await self.queue.send_message(
                    retry_message.message,
                    attributes={
                        "MessageType": MESSAGE_TYPE,
                        "RetryAttempt": retry_message.attempt,
                    },
                )
            except Exception as e:
                if retry_message.attempt < self.config.max_attempts:
                    logger.warning(
                        "Retry attempt failed, will retry",
                        message_id=message_id,
                        attempt=retry_message.attempt,
                        max_attempts=self.config.max_attempts,
                        error=str(e),
                    )
                    retry_message.attempt += 1
                    retry_message.last_attempt = datetime.now(timezone.utc)
                    continue

                logger.error(
                    "Max retry attempts reached, dropping message",
                    message_id=message_id,
                    attempt=retry_message.attempt,
                    max_attempts=self.config.max_attempts,
                    error=str(e),
                )
                self._retry_queue.pop(message_id, None)
                return

            logger.info(
                "Retry attempt successful",
                message_id=message_id,
                attempt=retry_message.attempt,
            )
            self._retry_queue.pop(message_id, None)
            return

    def get_status(self) -> RetryQueueStatus:
        return RetryQueueStatus(
            queue_size=len(self._retry_queue),
            messages=[
                RetryQueueEntry(id=message_id, attempts=retry_message.attempt)
                for message_id, retry_message in self._retry_queue.items()
            ],
        )

    async def drain(self) -> None:
        """Wait until every scheduled retry has succeeded or been dropped."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def close(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if self._retry_queue:
            logger.warning(
                "Dropping pending retry messages on shutdown",
                message_ids=list(self._retry_queue),
            )
        self._retry_queue.clear()
