from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from notifier.models import Repository, User


class EventType(Enum):
    REPOSITORY_ADDED = "repository_added"
    PUSH = "push"
    PULL_REQUEST = "pull_request"


class RepositorySummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    full_name: str = Field(alias="fullName")
    url: str

    @classmethod
    def from_model(cls, repository: Repository) -> "RepositorySummary":
        return cls(
            id=repository.id,
            name=repository.name,
            full_name=repository.full_name,
            url=repository.url,
        )


class UserSummary(BaseModel):
    id: int
    username: str

    @classmethod
    def from_model(cls, user: User) -> "UserSummary":
        return cls(id=user.id, username=user.username)


class QueueEnvelope(BaseModel):
    """Message placed on the queue for every repository event."""

    event: str
    message: str
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    repository: RepositorySummary
    sender: str | None = None
    action: str | None = None
    user: UserSummary | None = None

    @property
    def event_type(self) -> EventType | None:
        try:
            return EventType(self.event)
        except ValueError:
            return None

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
