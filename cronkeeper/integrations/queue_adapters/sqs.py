"""SQS queue adapter implementation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from cronkeeper.errors import TransientBackendError
from cronkeeper.integrations.aws.session import AwsSessionProvider, translate_aws_errors
from cronkeeper.queue.models import RawMessage


class SqsQueueAdapter:
    """Queue adapter backed by SQS (aioboto3).

    Messages are acknowledged by deleting them with their receipt handle.
    Unacknowledged messages become visible again after the queue's
    visibility timeout.
    """

    def __init__(self, *, queue_url: str, sessions: AwsSessionProvider) -> None:
        self.queue_url = queue_url
        self._sessions = sessions
        self._connected = False
        self._closed = False

    async def connect(self) -> None:
        if not self.queue_url:
            raise TransientBackendError("SQS queue URL is not configured")
        self._connected = True
        self._closed = False

    async def receive(self, *, max_messages: int = 10, wait_seconds: int = 5) -> list[RawMessage]:
        with translate_aws_errors("sqs receive"):
            async with self._sessions.client("sqs") as client:
                response = await client.receive_message(
                    QueueUrl=self.queue_url,
                    MaxNumberOfMessages=max_messages,
                    WaitTimeSeconds=wait_seconds,
                    AttributeNames=["SentTimestamp"],
                    MessageAttributeNames=["All"],
                )
        return [self._to_raw_message(item) for item in response.get("Messages", [])]

    async def ack(self, message: RawMessage) -> None:
        receipt_handle = message.metadata.get("receipt_handle")
        if not receipt_handle:
            return
        with translate_aws_errors("sqs delete"):
            async with self._sessions.client("sqs") as client:
                await client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)

    async def close(self) -> None:
        self._connected = False
        self._closed = True

    async def health_check(self) -> bool:
        return self._connected and not self._closed

    @staticmethod
    def _to_raw_message(item: dict[str, Any]) -> RawMessage:
        attributes = item.get("Attributes", {})
        sent = attributes.get("SentTimestamp")
        timestamp = (
            datetime.fromtimestamp(int(sent) / 1000, tz=timezone.utc)
            if sent
            else datetime.now(timezone.utc)
        )
        headers = {
            key: str(value.get("StringValue", ""))
            for key, value in item.get("MessageAttributes", {}).items()
        }
        return RawMessage(
            message_id=str(item.get("MessageId", "")),
            body=str(item.get("Body", "")).encode("utf-8"),
            headers=headers,
            timestamp=timestamp,
            metadata={"receipt_handle": item.get("ReceiptHandle", "")},
        )
