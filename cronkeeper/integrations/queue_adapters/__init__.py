"""Queue adapter implementations."""

from cronkeeper.integrations.queue_adapters.mock import MockQueueAdapter
from cronkeeper.integrations.queue_adapters.sqs import SqsQueueAdapter

__all__ = ["MockQueueAdapter", "SqsQueueAdapter"]
