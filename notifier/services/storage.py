import secrets
from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from notifier.models import PasswordResetToken, Repository, User, WebhookEvent

logger = structlog.get_logger(__name__)

WEBHOOK_SECRET_BYTES = 32


class Storage:
    """Persistence operations used by the notification pipeline.

    Methods only flush; the caller's ``get_db()`` block owns the transaction.
    """

    async def get_user(self, db: AsyncSession, user_id: int) -> User | None:
        return await db.get(User, user_id)

    async def get_user_by_username(
        self, db: AsyncSession, username: str
    ) -> User | None:
        result = await db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def update_user_password(
        self, db: AsyncSession, user_id: int, password_hash: str
    ) -> None:
        await db.execute(
            update(User).where(User.id == user_id).values(password=password_hash)
        )

    async def get_repository(
        self, db: AsyncSession, repository_id: int
    ) -> Repository | None:
        return await db.get(Repository, repository_id)

    async def add_repository(
        self,
        db: AsyncSession,
        user_id: int,
        name: str,
        full_name: str,
        url: str,
        description: str | None = None,
        stars: int = 0,
        is_private: bool = False,
    ) -> Repository:
        repository = Repository(
            user_id=user_id,
            name=name,
            full_name=full_name,
            url=url,
            description=description,
            stars=stars,
            is_private=is_private,
            webhook_enabled=False,
        )
        db.add(repository)
        await db.flush()
        return repository

    async def enable_webhook(self, db: AsyncSession, repository: Repository) -> str:
        secret = secrets.token_hex(WEBHOOK_SECRET_BYTES)
        repository.webhook_secret = secret
        repository.webhook_enabled = True
        await db.flush()
        logger.info("Webhook enabled", repository_id=repository.id)
        return secret

    async def disable_webhook(self, db: AsyncSession, repository: Repository) -> None:
        repository.webhook_secret = None
        repository.webhook_enabled = False
        await db.flush()
        logger.info("Webhook disabled", repository_id=repository.id)

    async def add_webhook_event(
        self, db: AsyncSession, event: WebhookEvent
    ) -> WebhookEvent:
        db.add(event)
        await db.flush()
        return event

    async def get_webhook_events(
        self, db: AsyncSession, repository_id: int, limit: int = 50
    ) -> list[WebhookEvent]:
        limit = min(max(1, limit), 100)
        stmt = (
            select(WebhookEvent)
            .where(WebhookEvent.repository_id == repository_id)
            .order_by(WebhookEvent.created_at.desc())
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def create_password_reset_token(
        self, db: AsyncSession, user_id: int, token: str, expires_at: datetime
    ) -> PasswordResetToken:
        reset_token = PasswordResetToken(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            used=False,
        )
        db.add(reset_token)
        await db.flush()
        return reset_token

    async def find_valid_password_reset_token(
        self, db: AsyncSession, token: str, now: datetime
    ) -> PasswordResetToken | None:
        stmt = select(PasswordResetToken).where(
            PasswordResetToken.token == token,
            PasswordResetToken.used.is_(False),
            PasswordResetToken.expires_at > now,
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    async def mark_token_as_used(self, db: AsyncSession, token: str) -> bool:
        result = await db.execute(
            update(PasswordResetToken)
            .where(
                PasswordResetToken.token == token,
                PasswordResetToken.used.is_(False),
            )
            .values(used=True)
        )
        return result.rowcount > 0
