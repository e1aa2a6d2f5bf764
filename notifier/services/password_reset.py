import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from notifier.models import User
from notifier.services.storage import Storage
from notifier.utils.email import EmailClient
from notifier.utils.passwords import hash_password

logger = structlog.get_logger(__name__)

TOKEN_BYTES = 32


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenAlreadyUsedError(RuntimeError):
    """Raised when a token is consumed between validation and use."""


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class PasswordResetService:
    def __init__(
        self,
        storage: Storage,
        email_client: EmailClient,
        token_ttl: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.storage = storage
        self.email_client = email_client
        self.token_ttl = token_ttl
        self.clock = clock

    async def create_token(self, db: AsyncSession, user_id: int) -> IssuedToken:
        token = secrets.token_hex(TOKEN_BYTES)
        expires_at = self.clock() + self.token_ttl
        await self.storage.create_password_reset_token(
            db, user_id=user_id, token=token, expires_at=expires_at
        )
        logger.info(
            "Password reset token created",
            user_id=user_id,
            expires_at=expires_at.isoformat(),
        )
        return IssuedToken(token=token, expires_at=expires_at)

    async def validate_token(self, db: AsyncSession, token: str) -> User | None:
        """Return the token's user, or None if the token is unknown, expired or used."""
        if not token:
            return None

        reset_token = await self.storage.find_valid_password_reset_token(
            db, token, now=self.clock()
        )
        if reset_token is None:
            return None

        return await self.storage.get_user(db, reset_token.user_id)

    async def consume_token(self, db: AsyncSession, token: str) -> bool:
        return await self.storage.mark_token_as_used(db, token)

    async def forgot_password(self, db: AsyncSession, username: str) -> None:
        """Issue a token and mail it, without revealing whether the account exists."""
        user = await self.storage.get_user_by_username(db, username)
        if user is None:
            logger.info("Password reset requested for unknown account")
            return

        issued = await self.create_token(db, user.id)

        sent = await self.email_client.send_password_reset_email(
            to=user.username,
            token=issued.token,
            username=user.username.split("@")[0],
        )
        if not sent:
            logger.error("Failed to send password reset email", user_id=user.id)

    async def reset_password(
        self, db: AsyncSession, token: str, new_password: str
    ) -> bool:
        """Set a new password for the token's owner and consume the token.

        Both writes share the caller's transaction; the password is updated
        before the token is marked used.
        """
        user = await self.validate_token(db, token)
        if user is None:
            return False

        await self.storage.update_user_password(db, user.id, hash_password(new_password))

        if not await self.consume_token(db, token):
            raise TokenAlreadyUsedError("Password reset token was consumed concurrently")

        logger.info("Password reset completed", user_id=user.id)
        return True
