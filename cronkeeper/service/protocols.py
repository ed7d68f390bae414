"""Platform collaborators of the cron lifecycle service."""

from __future__ import annotations

from typing import Protocol

from cronkeeper.cron.models import CronDescription
from cronkeeper.cron.tasks import Task


class TaskDefinitionStore(Protocol):
    async def add_revision(self, cron_name: str, description: CronDescription) -> tuple[str, str]: ...

    async def delete_family(self, family: str) -> None: ...

    async def run_task(self, task_definition_arn: str) -> Task: ...

    async def running_task_arns(self, family: str) -> list[str]: ...


class RuleManager(Protocol):
    async def create_rule(self, cron_name: str, topic_arn: str, schedule: str) -> str: ...

    async def delete_rule(self, rule_arn: str) -> None: ...


class LogReader(Protocol):
    async def tail(self, cron_name: str, task_id: str, log_type: str, limit: int = 100) -> list[str]: ...
