"""Cron lifecycle: provisioning, teardown, status and manual runs."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from cronkeeper.cron.models import Cron, CronDescription, Execution
from cronkeeper.cron.naming import DEFAULT_PREFIX, resource_name
from cronkeeper.cron.status import ExecutionStatus
from cronkeeper.errors import CronkeeperError, InvalidInputError, NotFoundError
from cronkeeper.integrations.aws.logs import LOG_TYPES
from cronkeeper.integrations.cronitor import HeartbeatMonitor
from cronkeeper.metrics import CronkeeperMetrics
from cronkeeper.service.protocols import LogReader, RuleManager, TaskDefinitionStore
from cronkeeper.store.protocols import CronStore, ExecutionStore
from cronkeeper.validation import validate_description

logger = logging.getLogger(__name__)

DEFAULT_EXECUTION_COUNT = 10


@dataclass(slots=True)
class CronStatus:
    """A cron together with its recent executions."""

    cron: Cron
    status: ExecutionStatus
    executions: list[Execution] = field(default_factory=list)


@dataclass(slots=True)
class TriggerResult:
    cron_name: str
    skipped: bool
    task_id: str | None = None


class CronService:
    """Provision crons on the platform and answer questions about them."""

    def __init__(
        self,
        *,
        crons: CronStore,
        executions: ExecutionStore,
        task_definitions: TaskDefinitionStore,
        rules: RuleManager,
        logs: LogReader,
        trigger_topic_arn: str,
        monitor: HeartbeatMonitor | None = None,
        metrics: CronkeeperMetrics | None = None,
        cron_prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self._crons = crons
        self._executions = executions
        self._task_definitions = task_definitions
        self._rules = rules
        self._logs = logs
        self._monitor = monitor
        self._metrics = metrics
        self._trigger_topic_arn = trigger_topic_arn
        self._cron_prefix = cron_prefix

    async def create(self, description: CronDescription) -> Cron:
        """Validate and provision a cron, replacing an earlier revision of it."""
        validate_description(description)
        name = description.name
        previous = await self._find(name)

        task_definition_arn, family = await self._task_definitions.add_revision(name, description)
        rule_arn = await self._rules.create_rule(name, self._trigger_topic_arn, description.schedule)

        monitor_id: str | None = None
        if description.notifications is not None and self._monitor is not None:
            monitor_id = await self._monitor.create_or_update(
                resource_name(name, self._cron_prefix), description.notifications
            )
        elif previous is not None and previous.monitor_id and self._monitor is not None:
            await self._monitor.delete(previous.monitor_id)

        cron = Cron(
            name=name,
            description=description,
            rule_arn=rule_arn,
            task_definition_family=family,
            latest_task_definition_arn=task_definition_arn,
            monitor_id=monitor_id,
        )
        await self._crons.save(cron)
        logger.info("cron_applied cron=%s task_definition=%s rule_arn=%s", name, task_definition_arn, rule_arn)
        return cron

    async def delete(self, name: str) -> None:
        """Tear down every resource of a cron.

        Each step is attempted even when an earlier one failed; the first
        error is raised once all steps ran.
        """
        cron = await self._crons.get_by_name(name)
        steps: list[tuple[str, Callable[[], Awaitable[None]]]] = []
        if cron.rule_arn:
            steps.append(("rule", lambda: self._rules.delete_rule(cron.rule_arn)))
        if cron.task_definition_family:
            steps.append(("task_definitions", lambda: self._task_definitions.delete_family(cron.task_definition_family)))
        monitor = self._monitor
        if cron.monitor_id and monitor is not None:
            monitor_id = cron.monitor_id
            steps.append(("monitor", lambda: monitor.delete(monitor_id)))
        steps.append(("executions", lambda: self._delete_executions(name)))
        steps.append(("record", lambda: self._crons.delete(name)))

        first_error: Exception | None = None
        for label, step in steps:
            try:
                await step()
            except Exception as exc:
                logger.error("cron_delete_step_failed cron=%s step=%s error=%s", name, label, exc)
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        logger.info("cron_deleted cron=%s", name)

    async def list_crons(self) -> list[str]:
        return await self._crons.list_names()

    async def status(self, name: str, count: int = DEFAULT_EXECUTION_COUNT) -> CronStatus:
        cron = await self._crons.get_by_name(name)
        try:
            executions = await self._executions.last_n(name, count)
        except CronkeeperError as exc:
            logger.error("cron_status_executions_failed cron=%s error=%s", name, exc)
            executions = []
        status = executions[0].status if executions else ExecutionStatus.NONE
        return CronStatus(cron=cron, status=status, executions=executions)

    async def executions(self, name: str, count: int = DEFAULT_EXECUTION_COUNT) -> list[Execution]:
        await self._crons.get_by_name(name)
        return await self._executions.last_n(name, count)

    async def execution_status(self, task_id: str) -> Execution:
        return await self._executions.get(task_id)

    async def execution_logs(self, task_id: str, log_type: str = "stdout", limit: int = 100) -> list[str]:
        if log_type not in LOG_TYPES:
            raise InvalidInputError(f"log type must be one of {', '.join(LOG_TYPES)}")
        execution = await self._executions.get(task_id)
        return await self._logs.tail(execution.cron_name, task_id, log_type, limit)

    async def trigger_by_rule_arn(self, rule_arn: str) -> TriggerResult:
        return await self._trigger(await self._crons.get_by_rule_arn(rule_arn))

    async def trigger_by_name(self, name: str) -> TriggerResult:
        return await self._trigger(await self._crons.get_by_name(name))

    async def _trigger(self, cron: Cron) -> TriggerResult:
        running = await self._task_definitions.running_task_arns(cron.task_definition_family)
        if running:
            logger.warning("cron_run_skipped cron=%s running_tasks=%s", cron.name, ",".join(running))
            marker = await self._executions.record_skipped(cron.name)
            if self._metrics is not None:
                self._metrics.record_triggered(cron.name, "skipped")
            return TriggerResult(cron_name=cron.name, skipped=True, task_id=marker.task_id)

        task = await self._task_definitions.run_task(cron.latest_task_definition_arn)
        if self._metrics is not None:
            self._metrics.record_triggered(cron.name, "pending")
        await self._executions.update(cron.name, task)
        logger.info("cron_run_started cron=%s task_id=%s", cron.name, task.task_id)
        return TriggerResult(cron_name=cron.name, skipped=False, task_id=task.task_id)

    async def _delete_executions(self, name: str) -> None:
        removed = await self._executions.delete(name)
        logger.info("cron_executions_deleted cron=%s count=%d", name, removed)

    async def _find(self, name: str) -> Cron | None:
        try:
            return await self._crons.get_by_name(name)
        except NotFoundError:
            return None
