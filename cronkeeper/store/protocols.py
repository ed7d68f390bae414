"""Protocols for cron and execution stores."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from cronkeeper.cron.models import Cron, Execution
from cronkeeper.cron.tasks import Task


@runtime_checkable
class ExecutionStore(Protocol):
    """Versioned per-execution history with bounded retention."""

    async def update(self, cron_name: str, task: Task) -> None:
        """Write the snapshot unless a record with an equal or higher version exists."""

    async def last_n(self, cron_name: str, n: int) -> list[Execution]:
        """Return the n most recent executions of a cron, newest first."""

    async def get(self, task_id: str) -> Execution:
        """Return one execution by task id or raise NotFoundError."""

    async def record_skipped(self, cron_name: str) -> Execution:
        """Write a marker for a scheduled fire that was dropped and return it."""

    async def delete(self, cron_name: str) -> int:
        """Drop every execution of a cron and return how many were dropped."""

    async def delete_expired(self, now: datetime) -> int:
        """Drop records past their expiry time and return how many were dropped."""


@runtime_checkable
class CronStore(Protocol):
    """Durable record of provisioned crons."""

    async def save(self, cron: Cron) -> None: ...

    async def get_by_name(self, name: str) -> Cron: ...

    async def get_by_rule_arn(self, rule_arn: str) -> Cron: ...

    async def list_names(self) -> list[str]: ...

    async def delete(self, name: str) -> None: ...
