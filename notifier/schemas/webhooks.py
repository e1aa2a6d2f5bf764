import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RetryQueueEntry(BaseModel):
    id: str
    attempts: int


class RetryQueueStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    queue_size: int = Field(alias="queueSize")
    messages: list[RetryQueueEntry]


class WebhookEventResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: uuid.UUID
    repository_id: int = Field(alias="repositoryId")
    type: str
    action: str | None = None
    sender: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")


class WebhookSecretResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    webhook_secret: str = Field(alias="webhookSecret")


class RepositoryCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    name: str = Field(min_length=1)
    full_name: str = Field(alias="fullName", min_length=1)
    url: str = Field(min_length=1)
    description: str | None = None
    stars: int = 0
    is_private: bool = Field(default=False, alias="isPrivate")


class RepositoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    user_id: int = Field(alias="userId")
    name: str
    full_name: str = Field(alias="fullName")
    url: str
    description: str | None = None
    stars: int = 0
    is_private: bool = Field(default=False, alias="isPrivate")
    webhook_enabled: bool = Field(default=False, alias="webhookEnabled")
