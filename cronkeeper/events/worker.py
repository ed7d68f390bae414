"""Leader-elected worker that turns task state change events into cron events."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any

from pydantic import ValidationError

from cronkeeper.cron.naming import DEFAULT_PREFIX, cron_name_from_resource
from cronkeeper.cron.tasks import Task
from cronkeeper.errors import LockTakenError
from cronkeeper.events.dispatcher import EventDispatcher
from cronkeeper.events.models import CronEvent, EventContext, derive_event
from cronkeeper.locking.manager import LockManager
from cronkeeper.metrics import CronkeeperMetrics
from cronkeeper.queue.models import TASK_STATE_CHANGE, RawMessage
from cronkeeper.queue.parsers import ParseError, parse_platform_event
from cronkeeper.queue.protocols import QueueAdapter

logger = logging.getLogger(__name__)


class MessageOutcome(str, Enum):
    """How one queue message was handled."""

    DISPATCHED = "dispatched"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass(slots=True)
class WorkerSettings:
    """Timing and identity of the event worker."""

    lock_name: str = "cronkeeper-worker"
    refresh_interval: float = 60.0
    poll_interval: float = 1.0
    max_messages: int = 10
    wait_seconds: int = 5
    cron_prefix: str = DEFAULT_PREFIX

    @property
    def lock_ttl(self) -> timedelta:
        return timedelta(seconds=2 * self.refresh_interval)


async def _wait(event: asyncio.Event, timeout: float) -> bool:
    """Wait for ``event`` up to ``timeout`` seconds; return whether it was set."""
    with contextlib.suppress(asyncio.TimeoutError):
        await asyncio.wait_for(event.wait(), timeout=timeout)
    return event.is_set()


class EventWorker:
    """Consume task state change events while holding the leader lock.

    As a follower the worker tries to take the lease once per refresh
    interval. As leader it polls the queue and refreshes the lease; losing
    the lease or the queue ends :meth:`run` with that error so the process
    can exit and be restarted.
    """

    def __init__(
        self,
        *,
        lock_manager: LockManager,
        queue: QueueAdapter,
        dispatcher: EventDispatcher,
        settings: WorkerSettings | None = None,
        metrics: CronkeeperMetrics | None = None,
    ) -> None:
        self.settings = settings or WorkerSettings()
        self._locks = lock_manager
        self._queue = queue
        self._dispatcher = dispatcher
        self._metrics = metrics
        self._is_leader = False
        self._processed_count = 0
        self._failed_count = 0

    @property
    def is_leader(self) -> bool:
        return self._is_leader

    def health_check(self) -> dict[str, Any]:
        return {
            "leader": self._is_leader,
            "processed_count": self._processed_count,
            "failed_count": self._failed_count,
        }

    async def run(self, stop: asyncio.Event) -> None:
        """Run until ``stop`` is set or leadership fails."""
        settings = self.settings
        await self._queue.connect()
        try:
            while not stop.is_set():
                try:
                    await self._locks.acquire(settings.lock_name, settings.lock_ttl)
                except LockTakenError:
                    logger.debug("worker_follower lock=%s", settings.lock_name)
                    if await _wait(stop, settings.refresh_interval):
                        break
                    continue
                logger.info("worker_became_leader lock=%s", settings.lock_name)
                self._is_leader = True
                try:
                    await self._lead(stop)
                finally:
                    self._is_leader = False
                    await self._release()
        finally:
            await self._queue.close()

    async def _release(self) -> None:
        try:
            await self._locks.release(self.settings.lock_name)
            logger.info("worker_released_lock lock=%s", self.settings.lock_name)
        except Exception:
            logger.exception("worker_release_failed lock=%s", self.settings.lock_name)

    async def _lead(self, stop: asyncio.Event) -> None:
        settings = self.settings
        leader_stop = asyncio.Event()
        poller = asyncio.create_task(self._poll_loop(leader_stop), name="cronkeeper-queue-poller")
        stop_waiter = asyncio.create_task(stop.wait(), name="cronkeeper-stop-waiter")
        try:
            while True:
                done, _ = await asyncio.wait(
                    {poller, stop_waiter},
                    timeout=settings.refresh_interval,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if poller in done:
                    poller.result()
                    return
                if stop_waiter in done:
                    return
                await self._locks.refresh(settings.lock_name, settings.lock_ttl)
                logger.debug("worker_refreshed_lock lock=%s", settings.lock_name)
        finally:
            leader_stop.set()
            stop_waiter.cancel()
            if not poller.done():
                # Let the in-flight batch finish; the poller checks leader_stop between batches.
                with contextlib.suppress(Exception):
                    await poller

    async def _poll_loop(self, stop: asyncio.Event) -> None:
        settings = self.settings
        while not stop.is_set():
            messages = await self._queue.receive(
                max_messages=settings.max_messages,
                wait_seconds=settings.wait_seconds,
            )
            for message in messages:
                await self.handle_message(message)
            if not messages and await _wait(stop, settings.poll_interval):
                return

    async def handle_message(self, message: RawMessage) -> MessageOutcome:
        """Process one message and acknowledge it unless processing failed."""
        try:
            outcome = await self._process(message)
            await self._queue.ack(message)
        except Exception:
            self._failed_count += 1
            if self._metrics is not None:
                self._metrics.record_event_error()
            logger.exception("event_processing_failed message_id=%s", message.message_id)
            return MessageOutcome.FAILED
        self._processed_count += 1
        return outcome

    async def _process(self, message: RawMessage) -> MessageOutcome:
        event = parse_platform_event(message.body)
        if event.detail_type != TASK_STATE_CHANGE:
            logger.warning(
                "event_unknown_type event_id=%s detail_type=%s source=%s",
                event.event_id,
                event.detail_type,
                event.source,
            )
            return MessageOutcome.IGNORED
        try:
            task = Task.model_validate(event.detail)
        except ValidationError as exc:
            raise ParseError(f"invalid task detail in event {event.event_id}: {exc}") from exc

        container = task.user_container()
        if container is None:
            logger.info("event_without_user_container event_id=%s task_arn=%s", event.event_id, task.task_arn)
            return MessageOutcome.IGNORED
        cron_name = cron_name_from_resource(container.name, self.settings.cron_prefix)
        if cron_name is None:
            logger.debug("event_not_a_cron event_id=%s container=%s", event.event_id, container.name)
            return MessageOutcome.IGNORED

        context = EventContext(cron_name=cron_name, task=task)
        derived = derive_event(task)
        if derived is not None:
            await self._dispatcher.fire(derived, context)
        await self._dispatcher.fire(CronEvent.EXECUTION_STATE_CHANGED, context)
        logger.debug(
            "event_dispatched cron=%s task_id=%s version=%s status=%s",
            cron_name,
            task.task_id,
            task.version,
            task.last_status,
        )
        return MessageOutcome.DISPATCHED
