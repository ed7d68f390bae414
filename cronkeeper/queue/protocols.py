"""Queue adapter protocol used by the event worker."""

from __future__ import annotations

from typing import Protocol

from cronkeeper.queue.models import RawMessage


class QueueAdapter(Protocol):
    """Abstract at-least-once queue interface."""

    async def connect(self) -> None:
        """Connect to backing queue system."""

    async def receive(self, *, max_messages: int, wait_seconds: int) -> list[RawMessage]:
        """Long-poll for up to ``max_messages`` messages.

        Raises TransientBackendError when the queue cannot be reached.
        """

    async def ack(self, message: RawMessage) -> None:
        """Acknowledge a message so it is not redelivered."""

    async def close(self) -> None:
        """Release adapter resources."""

    async def health_check(self) -> bool:
        """Return whether adapter connection is healthy."""
