import asyncio

import pytest

from notifier.services.retry_handler import MessageRetryHandler, RetryConfig
from tests.helpers import FakeQueue, RecordingSleep

BODY = {"event": "push", "message": "New push", "repository": {"id": 1}}


def test_calculate_backoff_without_jitter():
    handler = MessageRetryHandler(FakeQueue(), random_fn=lambda: 0.0)

    assert handler.calculate_backoff(1) == 1.0
    assert handler.calculate_backoff(2) == 2.0
    assert handler.calculate_backoff(3) == 4.0


def test_calculate_backoff_is_capped_at_max_delay():
    handler = MessageRetryHandler(
        FakeQueue(), RetryConfig(max_delay=5.0), random_fn=lambda: 0.0
    )

    assert handler.calculate_backoff(10) == 5.0


def test_calculate_backoff_stays_within_jitter_bounds():
    handler = MessageRetryHandler(FakeQueue())

    for attempt in range(1, 6):
        base = min(2 ** (attempt - 1), 60.0)
        for _ in range(20):
            delay = handler.calculate_backoff(attempt)
            assert base <= delay <= base + 1.0


def test_get_status_empty():
    handler = MessageRetryHandler(FakeQueue())

    status = handler.get_status()
    assert status.queue_size == 0
    assert status.messages == []
    assert status.model_dump(by_alias=True) == {"queueSize": 0, "messages": []}


@pytest.mark.asyncio
async def test_successful_retry_removes_message():
    queue = FakeQueue()
    sleep = RecordingSleep()
    handler = MessageRetryHandler(queue, sleep=sleep, random_fn=lambda: 0.0)

    handler.add_to_retry_queue("msg-1", BODY)
    assert handler.get_status().queue_size == 1

    await handler.drain()

    assert handler.get_status().queue_size == 0
    assert sleep.delays == [1.0]
    assert queue.sent == [(BODY, {"MessageType": "RepositoryEvent", "RetryAttempt": 1})]


@pytest.mark.asyncio
async def test_message_dropped_after_max_attempts():
    queue = FakeQueue(fail_sends=-1)
    sleep = RecordingSleep()
    handler = MessageRetryHandler(queue, sleep=sleep, random_fn=lambda: 0.0)

    handler.add_to_retry_queue("msg-1", BODY)
    await handler.drain()

    assert queue.send_attempts == 3
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert handler.get_status().queue_size == 0


@pytest.mark.asyncio
async def test_retry_succeeds_on_second_attempt():
    queue = FakeQueue(fail_sends=1)
    handler = MessageRetryHandler(queue, sleep=RecordingSleep())

    handler.add_to_retry_queue("msg-1", BODY)
    await handler.drain()

    assert queue.send_attempts == 2
    assert queue.sent == [(BODY, {"MessageType": "RepositoryEvent", "RetryAttempt": 2})]
    assert handler.get_status().queue_size == 0


@pytest.mark.asyncio
async def test_max_attempts_is_configurable():
    queue = FakeQueue(fail_sends=-1)
    handler = MessageRetryHandler(
        queue, RetryConfig(max_attempts=5), sleep=RecordingSleep()
    )

    handler.add_to_retry_queue("msg-1", BODY)
    await handler.drain()

    assert queue.send_attempts == 5


@pytest.mark.asyncio
async def test_status_reports_attempts_while_pending():
    queue = FakeQueue(fail_sends=-1)
    gate = asyncio.Event()
    delays = []

    async def blocking_sleep(delay):
        delays.append(delay)
        if delay >= 2.0:
            await gate.wait()

    handler = MessageRetryHandler(
        queue, sleep=blocking_sleep, random_fn=lambda: 0.0
    )
    handler.add_to_retry_queue("msg-1", BODY)
    handler.add_to_retry_queue("msg-2", BODY)

    while len(delays) < 4:
        await asyncio.sleep(0)

    status = handler.get_status()
    assert status.queue_size == 2
    assert {entry.id: entry.attempts for entry in status.messages} == {
        "msg-1": 2,
        "msg-2": 2,
    }

    gate.set()
    await handler.drain()
    assert handler.get_status().queue_size == 0


@pytest.mark.asyncio
async def test_close_cancels_pending_retries():
    queue = FakeQueue()

    async def never(_):
        await asyncio.Event().wait()

    handler = MessageRetryHandler(queue, sleep=never)
    handler.add_to_retry_queue("msg-1", BODY)
    await asyncio.sleep(0)

    await handler.close()

    assert handler.get_status().queue_size == 0
    assert queue.send_attempts == 0


def test_add_to_retry_queue_requires_running_loop():
    handler = MessageRetryHandler(FakeQueue())

    with pytest.raises(RuntimeError):
        handler.add_to_retry_queue("msg-1", BODY)
