"""In-memory queue adapter for local testing and CI."""

from __future__ import annotations

import asyncio
from collections import deque

from cronkeeper.errors import TransientBackendError
from cronkeeper.queue.models import RawMessage


class MockQueueAdapter:
    """Simple in-memory adapter implementing at-least-once semantics for tests.

    Received but unacknowledged messages stay in flight until
    :meth:`expire_visibility` puts them back on the queue.
    """

    def __init__(self) -> None:
        self._queue: deque[RawMessage] = deque()
        self._inflight: dict[str, RawMessage] = {}
        self._acked: list[str] = []
        self._receive_failures: deque[Exception] = deque()
        self._connected = False
        self._closed = False
        self.receive_calls = 0

    async def connect(self) -> None:
        self._connected = True
        self._closed = False

    async def receive(self, *, max_messages: int = 10, wait_seconds: int = 5) -> list[RawMessage]:
        self.receive_calls += 1
        if self._receive_failures:
            raise self._receive_failures.popleft()
        batch: list[RawMessage] = []
        while self._queue and len(batch) < max_messages:
            message = self._queue.popleft()
            self._inflight[message.message_id] = message
            batch.append(message)
        if not batch:
            await asyncio.sleep(0)
        return batch

    async def ack(self, message: RawMessage) -> None:
        self._inflight.pop(message.message_id, None)
        self._acked.append(message.message_id)

    async def close(self) -> None:
        self._closed = True
        self._connected = False

    async def health_check(self) -> bool:
        return self._connected and not self._closed

    def enqueue(self, message: RawMessage) -> None:
        self._queue.append(message)

    def fail_next_receive(self, error: Exception | None = None) -> None:
        self._receive_failures.append(error or TransientBackendError("queue unavailable"))

    def expire_visibility(self) -> None:
        """Make every in-flight message visible again."""
        self._queue.extend(self._inflight.values())
        self._inflight.clear()

    def get_acked(self) -> list[str]:
        return list(self._acked)

    def inflight_count(self) -> int:
        return len(self._inflight)

    def pending_count(self) -> int:
        return len(self._queue)
