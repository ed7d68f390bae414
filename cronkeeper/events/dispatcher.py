"""Named-event fan-out to registered listeners."""

from __future__ import annotations

import logging
import threading
from collections.abc import Awaitable, Callable

from cronkeeper.errors import CronkeeperError
from cronkeeper.events.models import CronEvent, EventContext

logger = logging.getLogger(__name__)

Listener = Callable[[EventContext], Awaitable[None]]


class ListenerError(CronkeeperError):
    """Raised when a listener fails; carries the event name and the cause."""

    def __init__(self, event: CronEvent, cause: BaseException) -> None:
        self.event = event
        self.cause = cause
        super().__init__(f"error executing listener for event {event.value}: {cause}")


class EventDispatcher:
    """Run listeners for a named event in registration order.

    Registration is guarded by a lock and ``fire`` iterates over a snapshot,
    so registering while events are in flight never changes a running chain.
    """

    def __init__(self) -> None:
        self._listeners: dict[CronEvent, list[Listener]] = {}
        self._lock = threading.Lock()

    def on(self, event: CronEvent, listener: Listener) -> None:
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)

    def listeners(self, event: CronEvent) -> list[Listener]:
        with self._lock:
            return list(self._listeners.get(event, ()))

    async def fire(self, event: CronEvent, context: EventContext) -> None:
        """Invoke listeners in order; the first failure aborts the chain."""
        for listener in self.listeners(event):
            try:
                await listener(context)
            except Exception as exc:
                logger.warning(
                    "listener_failed event=%s cron=%s task_id=%s error=%s",
                    event.value,
                    context.cron_name,
                    context.task.task_id,
                    exc,
                )
                raise ListenerError(event, exc) from exc
