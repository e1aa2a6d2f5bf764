"""Models module."""

from notifier.models.webhook_event import Base, WebhookEvent
from notifier.models.repository import Repository, User
from notifier.models.password_reset_token import PasswordResetToken

__all__ = [
    "Base",
    "WebhookEvent",
    "Repository",
    "User",
    "PasswordResetToken",
]
