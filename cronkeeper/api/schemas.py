"""Response bodies of the HTTP API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from cronkeeper.cron.models import CronDescription, Execution
from cronkeeper.service.lifecycle import CronStatus


class ErrorBody(BaseModel):
    code: str
    message: str


class ExecutionView(BaseModel):
    id: str
    cron_name: str
    task_arn: str
    status: str
    raw_status: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    exit_code: int | None = None
    timeout_exit_code: int | None = None
    reason: str | None = None
    version: int

    @classmethod
    def from_execution(cls, execution: Execution) -> ExecutionView:
        return cls(
            id=execution.task_id,
            cron_name=execution.cron_name,
            task_arn=execution.task_arn,
            status=execution.status.value,
            raw_status=execution.raw_status,
            start_time=execution.start_time,
            end_time=execution.end_time,
            exit_code=execution.user_exit_code,
            timeout_exit_code=execution.timeout_exit_code,
            reason=execution.reason,
            version=execution.version,
        )


class CronStatusView(BaseModel):
    name: str
    status: str
    description: CronDescription
    executions: list[ExecutionView]

    @classmethod
    def from_status(cls, status: CronStatus) -> CronStatusView:
        return cls(
            name=status.cron.name,
            status=status.status.value,
            description=status.cron.description,
            executions=[ExecutionView.from_execution(item) for item in status.executions],
        )


class CronListView(BaseModel):
    crons: list[str]


class ExecutionListView(BaseModel):
    executions: list[ExecutionView]


class ExecutionLogsView(BaseModel):
    id: str
    log_type: str
    lines: list[str]


class TriggerView(BaseModel):
    cron_name: str
    skipped: bool
    task_id: str | None = None
