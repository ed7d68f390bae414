"""Queue message models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

TASK_STATE_CHANGE = "ECS Task State Change"
SCHEDULED_EVENT = "Scheduled Event"


@dataclass(slots=True)
class RawMessage:
    """Raw message returned by a queue adapter."""

    message_id: str
    body: bytes
    headers: dict[str, str]
    timestamp: datetime
    metadata: dict[str, Any]


@dataclass(slots=True)
class PlatformEvent:
    """Decoded platform event envelope."""

    event_id: str
    detail_type: str
    source: str
    detail: dict[str, Any]
    resources: list[str]
