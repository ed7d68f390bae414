from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import pytest

from cronkeeper.cron.models import Cron, CronDescription
from cronkeeper.errors import LockLostError, TransientBackendError
from cronkeeper.events import (
    CronEvent,
    EventContext,
    EventDispatcher,
    EventWorker,
    HeartbeatNotifier,
    MessageOutcome,
    WorkerSettings,
)
from cronkeeper.integrations.queue_adapters import MockQueueAdapter
from cronkeeper.locking import InMemoryLockManager
from cronkeeper.metrics import CronkeeperMetrics
from cronkeeper.queue import RawMessage
from cronkeeper.store import InMemoryCronStore
from tests.conftest import FakeClock, build_task


def _raw_message(body: object, message_id: str = "m-1") -> RawMessage:
    encoded = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    return RawMessage(
        message_id=message_id,
        body=encoded,
        headers={},
        timestamp=datetime.now(timezone.utc),
        metadata={},
    )


def _task_event(**task_overrides: object) -> dict[str, object]:
    task = build_task(**task_overrides)  # type: ignore[arg-type]
    return {
        "id": "evt-1",
        "source": "aws.ecs",
        "detail-type": "ECS Task State Change",
        "detail": task.model_dump(mode="json", by_alias=True),
    }


class _Recorder:
    def __init__(self, dispatcher: EventDispatcher) -> None:
        self.events: list[tuple[CronEvent, str]] = []
        for event in CronEvent:
            dispatcher.on(event, self._listener(event))

    def _listener(self, event: CronEvent):  # noqa: ANN202
        async def _record(context: EventContext) -> None:
            self.events.append((event, context.cron_name))

        return _record


class _FakeMonitor:
    def __init__(self, log: list[str]) -> None:
        self.log = log

    async def report_run(self, monitor_id: str) -> None:
        self.log.append(f"run:{monitor_id}")

    async def report_success(self, monitor_id: str) -> None:
        self.log.append(f"success:{monitor_id}")

    async def report_fail(self, monitor_id: str, message: str) -> None:
        self.log.append(f"fail:{monitor_id}")

    async def create_or_update(self, name, notifications) -> str:  # noqa: ANN001
        return name

    async def delete(self, monitor_id: str) -> None:
        return None


def _settings(**overrides: object) -> WorkerSettings:
    values: dict[str, object] = {"refresh_interval": 0.05, "poll_interval": 0.01, "wait_seconds": 0}
    values.update(overrides)
    return WorkerSettings(**values)  # type: ignore[arg-type]


async def _eventually(predicate, timeout: float = 2.0) -> None:  # noqa: ANN001
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


async def _delivered(queue: MockQueueAdapter, message: RawMessage) -> RawMessage:
    queue.enqueue(message)
    [received] = await queue.receive(max_messages=1, wait_seconds=0)
    return received


@pytest.mark.asyncio
async def test_task_event_fires_derived_then_state_changed_and_acks() -> None:
    queue = MockQueueAdapter()
    dispatcher = EventDispatcher()
    recorder = _Recorder(dispatcher)
    worker = EventWorker(lock_manager=InMemoryLockManager(), queue=queue, dispatcher=dispatcher)
    message = await _delivered(queue, _raw_message(_task_event(version=1)))

    assert await worker.handle_message(message) == MessageOutcome.DISPATCHED
    assert recorder.events == [
        (CronEvent.EXECUTION_STARTED, "daily-report"),
        (CronEvent.EXECUTION_STATE_CHANGED, "daily-report"),
    ]
    assert queue.get_acked() == ["m-1"]
    assert queue.inflight_count() == 0


@pytest.mark.asyncio
async def test_stopped_task_fires_stopped_event() -> None:
    queue = MockQueueAdapter()
    dispatcher = EventDispatcher()
    recorder = _Recorder(dispatcher)
    worker = EventWorker(lock_manager=InMemoryLockManager(), queue=queue, dispatcher=dispatcher)
    event = _task_event(version=5, last_status="STOPPED", desired_status="STOPPED", user_exit_code=0)
    await worker.handle_message(await _delivered(queue, _raw_message(event)))
    assert [name for name, _ in recorder.events] == [CronEvent.EXECUTION_STOPPED, CronEvent.EXECUTION_STATE_CHANGED]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"detail-type": "EC2 Instance State-change Notification", "detail": {}},
        _task_event(cron_container="billing-worker"),
        {
            "detail-type": "ECS Task State Change",
            "detail": {"taskArn": "arn:aws:ecs:r:1:task/c/t", "containers": [{"name": "timeout"}]},
        },
    ],
)
async def test_irrelevant_messages_are_acked_without_events(body: dict[str, object]) -> None:
    queue = MockQueueAdapter()
    dispatcher = EventDispatcher()
    recorder = _Recorder(dispatcher)
    worker = EventWorker(lock_manager=InMemoryLockManager(), queue=queue, dispatcher=dispatcher)
    outcome = await worker.handle_message(await _delivered(queue, _raw_message(body)))
    assert outcome == MessageOutcome.IGNORED
    assert recorder.events == []
    assert queue.get_acked() == ["m-1"]


@pytest.mark.asyncio
async def test_listener_failure_leaves_message_unacked_for_redelivery() -> None:
    queue = MockQueueAdapter()
    dispatcher = EventDispatcher()
    metrics = CronkeeperMetrics()
    failures = {"left": 1}

    async def flaky(context: EventContext) -> None:
        if failures["left"]:
            failures["left"] -= 1
            raise RuntimeError("store offline")

    dispatcher.on(CronEvent.EXECUTION_STATE_CHANGED, flaky)
    worker = EventWorker(lock_manager=InMemoryLockManager(), queue=queue, dispatcher=dispatcher, metrics=metrics)
    queue.enqueue(_raw_message(_task_event(version=2)))

    [first] = await queue.receive(max_messages=10, wait_seconds=0)
    assert await worker.handle_message(first) == MessageOutcome.FAILED
    assert queue.get_acked() == []
    assert metrics.sample("ecs_events_errors_total") == 1.0

    queue.expire_visibility()
    [again] = await queue.receive(max_messages=10, wait_seconds=0)
    assert await worker.handle_message(again) == MessageOutcome.DISPATCHED
    assert queue.get_acked() == ["m-1"]
    assert worker.health_check()["failed_count"] == 1


@pytest.mark.asyncio
async def test_malformed_message_is_not_acked() -> None:
    queue = MockQueueAdapter()
    worker = EventWorker(lock_manager=InMemoryLockManager(), queue=queue, dispatcher=EventDispatcher())
    outcome = await worker.handle_message(await _delivered(queue, _raw_message(b"{not json")))
    assert outcome == MessageOutcome.FAILED
    assert queue.get_acked() == []
    assert queue.inflight_count() == 1


@pytest.mark.asyncio
async def test_end_to_end_event_reports_heartbeat_and_acks() -> None:
    queue = MockQueueAdapter()
    locks = InMemoryLockManager(clock=FakeClock())
    dispatcher = EventDispatcher()
    log: list[str] = []

    async def on_started(context: EventContext) -> None:
        log.append(f"started:{context.cron_name}")

    async def on_state_changed(context: EventContext) -> None:
        log.append(f"state_changed:{context.cron_name}")

    crons = InMemoryCronStore()
    await crons.save(
        Cron(
            name="daily-report",
            description=CronDescription.model_validate(
                {
                    "name": "daily-report",
                    "schedule": "rate(1 day)",
                    "container": {"image": "busybox"},
                    "notifications": {"slackChannel": "#ops", "noRunThreshold": 600},
                }
            ),
            monitor_id="cron--daily-report",
        )
    )
    notifier = HeartbeatNotifier(crons, _FakeMonitor(log))
    dispatcher.on(CronEvent.EXECUTION_STARTED, on_started)
    dispatcher.on(CronEvent.EXECUTION_STARTED, notifier.on_started)
    dispatcher.on(CronEvent.EXECUTION_STATE_CHANGED, on_state_changed)

    worker = EventWorker(lock_manager=locks, queue=queue, dispatcher=dispatcher, settings=_settings())
    queue.enqueue(_raw_message(_task_event(version=1)))
    stop = asyncio.Event()
    runner = asyncio.create_task(worker.run(stop))
    await _eventually(lambda: queue.get_acked() == ["m-1"])
    stop.set()
    await asyncio.wait_for(runner, timeout=2.0)

    assert log == ["started:daily-report", "run:cron--daily-report", "state_changed:daily-report"]
    assert locks.expiry("cronkeeper-worker") is None
    assert await queue.health_check() is False


@pytest.mark.asyncio
async def test_at_most_one_leader_and_handoff_on_stop() -> None:
    locks = InMemoryLockManager(clock=FakeClock())
    first = EventWorker(lock_manager=locks, queue=MockQueueAdapter(), dispatcher=EventDispatcher(), settings=_settings())
    second = EventWorker(lock_manager=locks, queue=MockQueueAdapter(), dispatcher=EventDispatcher(), settings=_settings())
    first_stop, second_stop = asyncio.Event(), asyncio.Event()

    first_task = asyncio.create_task(first.run(first_stop))
    await _eventually(lambda: first.is_leader)
    second_task = asyncio.create_task(second.run(second_stop))
    for _ in range(20):
        assert not (first.is_leader and second.is_leader)
        await asyncio.sleep(0.01)
    assert second.is_leader is False

    first_stop.set()
    await asyncio.wait_for(first_task, timeout=2.0)
    await _eventually(lambda: second.is_leader)
    second_stop.set()
    await asyncio.wait_for(second_task, timeout=2.0)


@pytest.mark.asyncio
async def test_lost_lease_surfaces_error() -> None:
    locks = InMemoryLockManager(clock=FakeClock())
    worker = EventWorker(lock_manager=locks, queue=MockQueueAdapter(), dispatcher=EventDispatcher(), settings=_settings())
    runner = asyncio.create_task(worker.run(asyncio.Event()))
    await _eventually(lambda: worker.is_leader)
    await locks.release("cronkeeper-worker")
    with pytest.raises(LockLostError):
        await asyncio.wait_for(runner, timeout=2.0)
    assert worker.is_leader is False


@pytest.mark.asyncio
async def test_queue_failure_ends_leadership_and_releases_lease() -> None:
    locks = InMemoryLockManager(clock=FakeClock())
    queue = MockQueueAdapter()
    queue.fail_next_receive()
    worker = EventWorker(lock_manager=locks, queue=queue, dispatcher=EventDispatcher(), settings=_settings())
    with pytest.raises(TransientBackendError):
        await asyncio.wait_for(worker.run(asyncio.Event()), timeout=2.0)
    assert locks.expiry("cronkeeper-worker") is None


@pytest.mark.asyncio
async def test_unexpected_lock_error_terminates_follower() -> None:
    class _BrokenLocks(InMemoryLockManager):
        async def acquire(self, name, ttl) -> None:  # noqa: ANN001
            raise TransientBackendError("lock table unreachable")

    worker = EventWorker(lock_manager=_BrokenLocks(), queue=MockQueueAdapter(), dispatcher=EventDispatcher())
    with pytest.raises(TransientBackendError):
        await asyncio.wait_for(worker.run(asyncio.Event()), timeout=2.0)


def test_lock_ttl_is_twice_the_refresh_interval() -> None:
    assert WorkerSettings(refresh_interval=60).lock_ttl.total_seconds() == 120
