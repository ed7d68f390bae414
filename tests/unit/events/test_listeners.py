from __future__ import annotations

import pytest

from cronkeeper.cron.models import Cron, CronDescription
from cronkeeper.events import (
    CronEvent,
    EventContext,
    EventDispatcher,
    HeartbeatNotifier,
    register_listeners,
)
from cronkeeper.metrics import CronkeeperMetrics
from cronkeeper.store import InMemoryCronStore, InMemoryExecutionStore
from tests.conftest import FakeClock, build_task


class _FakeMonitor:
    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []

    async def report_run(self, monitor_id: str) -> None:
        self.calls.append(("run", monitor_id))

    async def report_success(self, monitor_id: str) -> None:
        self.calls.append(("success", monitor_id))

    async def report_fail(self, monitor_id: str, message: str) -> None:
        self.calls.append(("fail", monitor_id, message))

    async def create_or_update(self, name, notifications) -> str:  # noqa: ANN001
        return name

    async def delete(self, monitor_id: str) -> None:
        self.calls.append(("delete", monitor_id))


async def _store_with_cron(*, notifications: bool = True) -> InMemoryCronStore:
    payload: dict[str, object] = {
        "name": "daily-report",
        "schedule": "rate(1 day)",
        "container": {"image": "busybox"},
    }
    if notifications:
        payload["notifications"] = {"slackChannel": "#ops", "noRunThreshold": 3600}
    crons = InMemoryCronStore()
    await crons.save(
        Cron(
            name="daily-report",
            description=CronDescription.model_validate(payload),
            monitor_id="cron--daily-report" if notifications else None,
        )
    )
    return crons


def _stopped(user_exit_code: int | None, timeout_exit_code: int | None = 0) -> EventContext:
    task = build_task(
        version=3,
        last_status="STOPPED",
        desired_status="STOPPED",
        user_exit_code=user_exit_code,
        timeout_exit_code=timeout_exit_code,
    )
    return EventContext(cron_name="daily-report", task=task)


@pytest.mark.asyncio
async def test_started_reports_run() -> None:
    monitor = _FakeMonitor()
    notifier = HeartbeatNotifier(await _store_with_cron(), monitor)
    await notifier.on_started(EventContext(cron_name="daily-report", task=build_task()))
    assert monitor.calls == [("run", "cron--daily-report")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("user_exit_code", "timeout_exit_code", "expected"),
    [
        (0, 0, ("success", "cron--daily-report")),
        (1, 0, ("fail", "cron--daily-report", "Execution failed")),
        (0, 201, ("fail", "cron--daily-report", "Execution timed out")),
        (None, 0, ("fail", "cron--daily-report", "Execution failed")),
    ],
)
async def test_stopped_reports_outcome(user_exit_code, timeout_exit_code, expected) -> None:  # noqa: ANN001
    monitor = _FakeMonitor()
    notifier = HeartbeatNotifier(await _store_with_cron(), monitor)
    await notifier.on_stopped(_stopped(user_exit_code, timeout_exit_code))
    assert monitor.calls == [expected]


@pytest.mark.asyncio
async def test_no_heartbeat_without_notifications_or_cron() -> None:
    monitor = _FakeMonitor()
    notifier = HeartbeatNotifier(await _store_with_cron(notifications=False), monitor)
    await notifier.on_started(EventContext(cron_name="daily-report", task=build_task()))
    await notifier.on_started(EventContext(cron_name="deleted-cron", task=build_task()))
    assert monitor.calls == []


@pytest.mark.asyncio
async def test_registered_listeners_persist_count_and_notify() -> None:
    executions = InMemoryExecutionStore(clock=FakeClock())
    monitor = _FakeMonitor()
    metrics = CronkeeperMetrics()
    dispatcher = EventDispatcher()
    register_listeners(
        dispatcher,
        executions=executions,
        crons=await _store_with_cron(),
        monitor=monitor,
        metrics=metrics,
    )
    started = EventContext(cron_name="daily-report", task=build_task(version=1))
    await dispatcher.fire(CronEvent.EXECUTION_STARTED, started)
    await dispatcher.fire(CronEvent.EXECUTION_STATE_CHANGED, started)
    stopped = _stopped(2)
    await dispatcher.fire(CronEvent.EXECUTION_STOPPED, stopped)
    await dispatcher.fire(CronEvent.EXECUTION_STATE_CHANGED, stopped)

    assert (await executions.get("task-1")).version == 3
    assert monitor.calls == [("run", "cron--daily-report"), ("fail", "cron--daily-report", "Execution failed")]
    assert metrics.sample("executions_activated_total", {"cron_name": "daily-report"}) == 1.0
    assert metrics.sample("executions_finished_total", {"cron_name": "daily-report", "type": "failed"}) == 1.0
