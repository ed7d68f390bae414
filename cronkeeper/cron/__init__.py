"""Cron descriptions, task snapshots and execution classification."""

from cronkeeper.cron.models import (
    DEFAULT_TIMEOUT_SECONDS,
    EXECUTION_RETENTION,
    CapacityDescription,
    ContainerDescription,
    Cron,
    CronDescription,
    Execution,
    LoggingDescription,
    NotificationDescription,
)
from cronkeeper.cron.naming import cron_name_from_resource, resource_name
from cronkeeper.cron.status import TIMEOUT_EXIT_CODE, ExecutionStatus, classify, is_running
from cronkeeper.cron.tasks import TIMEOUT_CONTAINER_NAME, Container, Task, task_id_from_arn

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "EXECUTION_RETENTION",
    "TIMEOUT_CONTAINER_NAME",
    "TIMEOUT_EXIT_CODE",
    "CapacityDescription",
    "Container",
    "ContainerDescription",
    "Cron",
    "CronDescription",
    "Execution",
    "ExecutionStatus",
    "LoggingDescription",
    "NotificationDescription",
    "Task",
    "classify",
    "cron_name_from_resource",
    "is_running",
    "resource_name",
    "task_id_from_arn",
]
