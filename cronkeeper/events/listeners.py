"""Listeners reacting to cron execution events."""

from __future__ import annotations

import logging

from cronkeeper.cron.status import ExecutionStatus, classify
from cronkeeper.cron.tasks import Task
from cronkeeper.errors import NotFoundError
from cronkeeper.events.dispatcher import EventDispatcher
from cronkeeper.events.models import CronEvent, EventContext
from cronkeeper.integrations.cronitor import HeartbeatMonitor
from cronkeeper.metrics import CronkeeperMetrics
from cronkeeper.store.protocols import CronStore, ExecutionStore

logger = logging.getLogger(__name__)


def task_status(task: Task) -> ExecutionStatus:
    user = task.user_container()
    sidecar = task.timeout_container()
    return classify(
        task.last_status,
        user.exit_code if user is not None else None,
        sidecar.exit_code if sidecar is not None else None,
    )


class ExecutionStatePersister:
    """Write every observed task snapshot to the execution store."""

    def __init__(self, store: ExecutionStore) -> None:
        self._store = store

    async def __call__(self, context: EventContext) -> None:
        await self._store.update(context.cron_name, context.task)


class HeartbeatNotifier:
    """Forward execution starts and outcomes to the cron's heartbeat monitor."""

    def __init__(self, crons: CronStore, monitor: HeartbeatMonitor) -> None:
        self._crons = crons
        self._monitor = monitor

    async def on_started(self, context: EventContext) -> None:
        monitor_id = await self._monitor_id(context.cron_name)
        if monitor_id is None:
            return
        await self._monitor.report_run(monitor_id)

    async def on_stopped(self, context: EventContext) -> None:
        monitor_id = await self._monitor_id(context.cron_name)
        if monitor_id is None:
            return
        status = task_status(context.task)
        if status == ExecutionStatus.SUCCESS:
            await self._monitor.report_success(monitor_id)
            return
        message = "Execution timed out" if status == ExecutionStatus.TIMEOUT else "Execution failed"
        await self._monitor.report_fail(monitor_id, message)

    async def _monitor_id(self, cron_name: str) -> str | None:
        try:
            cron = await self._crons.get_by_name(cron_name)
        except NotFoundError:
            logger.info("heartbeat_skipped cron=%s reason=cron_not_found", cron_name)
            return None
        if cron.description.notifications is None or not cron.monitor_id:
            return None
        return cron.monitor_id


class ExecutionMetricsRecorder:
    """Count execution starts and outcomes."""

    def __init__(self, metrics: CronkeeperMetrics) -> None:
        self._metrics = metrics

    async def on_started(self, context: EventContext) -> None:
        self._metrics.record_activated(context.cron_name)

    async def on_stopped(self, context: EventContext) -> None:
        self._metrics.record_finished(context.cron_name, task_status(context.task).value)


def register_listeners(
    dispatcher: EventDispatcher,
    *,
    executions: ExecutionStore,
    crons: CronStore,
    monitor: HeartbeatMonitor | None = None,
    metrics: CronkeeperMetrics | None = None,
) -> None:
    """Wire the standard listeners into a dispatcher."""
    dispatcher.on(CronEvent.EXECUTION_STATE_CHANGED, ExecutionStatePersister(executions))
    if metrics is not None:
        recorder = ExecutionMetricsRecorder(metrics)
        dispatcher.on(CronEvent.EXECUTION_STARTED, recorder.on_started)
        dispatcher.on(CronEvent.EXECUTION_STOPPED, recorder.on_stopped)
    if monitor is not None:
        notifier = HeartbeatNotifier(crons, monitor)
        dispatcher.on(CronEvent.EXECUTION_STARTED, notifier.on_started)
        dispatcher.on(CronEvent.EXECUTION_STOPPED, notifier.on_stopped)
