from datetime import datetime, timedelta, timezone

import bcrypt
import pytest

from notifier.services.password_reset import PasswordResetService
from notifier.services.storage import Storage
from tests.helpers import make_email_client


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def email_client():
    return make_email_client()


@pytest.fixture
def service(email_client, clock):
    return PasswordResetService(Storage(), email_client, clock=clock)


@pytest.mark.asyncio
async def test_create_token(session_factory, user, service, clock):
    async with session_factory() as db:
        issued = await service.create_token(db, user.id)

    assert len(issued.token) == 64
    int(issued.token, 16)
    assert issued.expires_at == clock.now + timedelta(hours=1)


@pytest.mark.asyncio
async def test_tokens_are_unique(session_factory, user, service):
    async with session_factory() as db:
        tokens = {(await service.create_token(db, user.id)).token for _ in range(5)}

    assert len(tokens) == 5


@pytest.mark.asyncio
async def test_validate_then_consume(session_factory, user, service):
    async with session_factory() as db:
        issued = await service.create_token(db, user.id)

    async with session_factory() as db:
        validated = await service.validate_token(db, issued.token)
        assert validated.id == user.id
        assert await service.consume_token(db, issued.token) is True

    async with session_factory() as db:
        assert await service.validate_token(db, issued.token) is None
        assert await service.consume_token(db, issued.token) is False


@pytest.mark.asyncio
async def test_validate_rejects_expired_token(session_factory, user, service, clock):
    async with session_factory() as db:
        issued = await service.create_token(db, user.id)

    clock.advance(timedelta(minutes=59))
    async with session_factory() as db:
        assert (await service.validate_token(db, issued.token)).id == user.id

    clock.advance(timedelta(minutes=2))
    async with session_factory() as db:
        assert await service.validate_token(db, issued.token) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["", "unknown-token"])
async def test_validate_rejects_unknown_token(session_factory, user, service, token):
    async with session_factory() as db:
        assert await service.validate_token(db, token) is None


@pytest.mark.asyncio
async def test_forgot_password_sends_email(session_factory, user, service, email_client):
    async with session_factory() as db:
        await service.forgot_password(db, "octocat@example.com")

    email_client.send_password_reset_email.assert_called_once()
    kwargs = email_client.send_password_reset_email.call_args.kwargs
    assert kwargs["to"] == "octocat@example.com"
    assert kwargs["username"] == "octocat"

    async with session_factory() as db:
        assert (await service.validate_token(db, kwargs["token"])).id == user.id


@pytest.mark.asyncio
async def test_forgot_password_unknown_account_is_silent(
    session_factory, user, service, email_client
):
    async with session_factory() as db:
        result = await service.forgot_password(db, "nobody@example.com")

    assert result is None
    email_client.send_password_reset_email.assert_not_called()


@pytest.mark.asyncio
async def test_forgot_password_email_failure_is_not_raised(
    session_factory, user, service, email_client
):
    email_client.send_password_reset_email.return_value = False

    async with session_factory() as db:
        await service.forgot_password(db, "octocat@example.com")

    email_client.send_password_reset_email.assert_called_once()


@pytest.mark.asyncio
async def test_reset_password(session_factory, user, service):
    async with session_factory() as db:
        issued = await service.create_token(db, user.id)

    async with session_factory() as db:
        assert await service.reset_password(db, issued.token, "correct horse") is True

    async with session_factory() as db:
        refreshed = await service.storage.get_user(db, user.id)
        assert bcrypt.checkpw(b"correct horse", refreshed.password.encode())

    async with session_factory() as db:
        assert await service.reset_password(db, issued.token, "another one") is False


@pytest.mark.asyncio
async def test_reset_password_with_expired_token(session_factory, user, service, clock):
    async with session_factory() as db:
        issued = await service.create_token(db, user.id)

    clock.advance(timedelta(hours=2))
    async with session_factory() as db:
        assert await service.reset_password(db, issued.token, "correct horse") is False

    async with session_factory() as db:
        refreshed = await service.storage.get_user(db, user.id)
        assert refreshed.password == "old-hash"


@pytest.mark.asyncio
async def test_outstanding_tokens_are_independent(session_factory, user, service, clock):
    async with session_factory() as db:
        first = await service.create_token(db, user.id)

    clock.advance(timedelta(minutes=30))
    async with session_factory() as db:
        second = await service.create_token(db, user.id)
        third = await service.create_token(db, user.id)

    async with session_factory() as db:
        assert await service.consume_token(db, second.token) is True

    # first expires, second is used, third is still valid
    clock.advance(timedelta(minutes=45))
    async with session_factory() as db:
        assert await service.validate_token(db, first.token) is None
        assert await service.validate_token(db, second.token) is None
        assert (await service.validate_token(db, third.token)).id == user.id

    async with session_factory() as db:
        assert await service.reset_password(db, third.token, "correct horse") is True
