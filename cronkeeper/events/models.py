"""Cron event names and the context handed to listeners."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cronkeeper.cron.tasks import Task


class CronEvent(str, Enum):
    """Events derived from task state changes."""

    EXECUTION_STARTED = "CronExecutionStarted"
    EXECUTION_STOPPED = "CronExecutionStopped"
    EXECUTION_STATE_CHANGED = "CronExecutionStateChanged"


@dataclass(frozen=True, slots=True)
class EventContext:
    """Read-only view of one task observation for a cron."""

    cron_name: str
    task: Task


def derive_event(task: Task) -> CronEvent | None:
    """Return the lifecycle event a snapshot represents, if any.

    The first version of a task marks its start; a snapshot whose last and
    desired status are both STOPPED marks its end.
    """
    if task.version == 1:
        return CronEvent.EXECUTION_STARTED
    if task.last_status == "STOPPED" and task.desired_status == "STOPPED":
        return CronEvent.EXECUTION_STOPPED
    return None
