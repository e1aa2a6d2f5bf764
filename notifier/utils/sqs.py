import json
from dataclasses import dataclass, field
from typing import Any

import aioboto3
import structlog

logger = structlog.get_logger(__name__)

MESSAGE_TYPE = "RepositoryEvent"


class QueueConfigurationError(RuntimeError):
    """Raised when the queue cannot be used because it is not configured."""


@dataclass
class ReceivedMessage:
    message_id: str
    receipt_handle: str
    body: str | None
    attributes: dict[str, str] = field(default_factory=dict)


def encode_attributes(attributes: dict[str, str | int]) -> dict[str, dict[str, str]]:
    encoded: dict[str, dict[str, str]] = {}
    for name, value in attributes.items():
        if isinstance(value, bool) or not isinstance(value, int):
            encoded[name] = {"DataType": "String", "StringValue": str(value)}
        else:
            encoded[name] = {"DataType": "Number", "StringValue": str(value)}
    return encoded


def decode_attributes(attributes: dict[str, Any] | None) -> dict[str, str]:
    if not attributes:
        return {}
    return {
        name: value.get("StringValue", "")
        for name, value in attributes.items()
        if isinstance(value, dict)
    }


class SQSQueueClient:
    def __init__(
        self,
        queue_url: str | None,
        region: str,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        session: Any | None = None,
    ):
        self.queue_url = queue_url
        self.region = region
        self.session = session or aioboto3.Session(
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
        )

    def ensure_configured(self) -> str:
        if not self.queue_url:
            raise QueueConfigurationError("AWS_QUEUE_URL is not configured")
        return self.queue_url

    async def send_message(
        self,
        body: dict[str, Any],
        attributes: dict[str, str | int] | None = None,
    ) -> str | None:
        queue_url = self.ensure_configured()
        async with self.session.client("sqs", region_name=self.region) as client:
            response = await client.send_message(
                QueueUrl=queue_url,
                MessageBody=json.dumps(body),
                MessageAttributes=encode_attributes(
                    attributes or {"MessageType": MESSAGE_TYPE}
                ),
            )
        return response.get("MessageId")

    async def receive_messages(
        self, max_messages: int = 10, wait_seconds: int = 20
    ) -> list[ReceivedMessage]:
        queue_url = self.ensure_configured()
        async with self.session.client("sqs", region_name=self.region) as client:
            response = await client.receive_message(
                QueueUrl=queue_url,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=wait_seconds,
                AttributeNames=["All"],
                MessageAttributeNames=["All"],
            )

        return [
            ReceivedMessage(
                message_id=raw.get("MessageId", ""),
                receipt_handle=raw.get("ReceiptHandle", ""),
                body=raw.get("Body"),
                attributes=decode_attributes(raw.get("MessageAttributes")),
            )
            for raw in response.get("Messages", [])
        ]

    async def delete_message(self, receipt_handle: str) -> None:
        queue_url = self.ensure_configured()
        async with self.session.client("sqs", region_name=self.region) as client:
            await client.delete_message(
                QueueUrl=queue_url,
                ReceiptHandle=receipt_handle,
            )
        logger.debug("Deleted message from queue", receipt_handle=receipt_handle)
