"""Queue message models, adapter protocol and parsers."""

from cronkeeper.queue.models import SCHEDULED_EVENT, TASK_STATE_CHANGE, PlatformEvent, RawMessage
from cronkeeper.queue.parsers import JSONParser, ParseError, parse_platform_event
from cronkeeper.queue.protocols import QueueAdapter

__all__ = [
    "JSONParser",
    "ParseError",
    "PlatformEvent",
    "QueueAdapter",
    "RawMessage",
    "SCHEDULED_EVENT",
    "TASK_STATE_CHANGE",
    "parse_platform_event",
]
