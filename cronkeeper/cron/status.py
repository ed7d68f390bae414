"""Execution outcome classification.

This is the only place where the outcome of a task run is decided. Every
reader (store, listeners, API) derives status through :func:`classify`.
"""

from __future__ import annotations

from enum import Enum


class ExecutionStatus(str, Enum):
    """Classified execution status."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"
    RUNNING = "RUNNING"
    PENDING = "PENDING"
    SKIPPED = "SKIPPED"
    NONE = "NONE"


RAW_STOPPED = "STOPPED"
# Marker written for a scheduled fire dropped while a previous run was active.
RAW_SKIPPED = "SKIPPED"
TIMEOUT_EXIT_CODE = 201

_PASS_THROUGH = {
    "PENDING": ExecutionStatus.PENDING,
    "RUNNING": ExecutionStatus.RUNNING,
    RAW_SKIPPED: ExecutionStatus.SKIPPED,
}
_FINISHED = frozenset(
    {ExecutionStatus.SUCCESS, ExecutionStatus.FAILED, ExecutionStatus.TIMEOUT, ExecutionStatus.SKIPPED}
)


def classify(
    raw_status: str | None,
    user_exit_code: int | None,
    timeout_exit_code: int | None,
) -> ExecutionStatus:
    """Classify a raw task snapshot into an execution status.

    The timeout sidecar check runs before any user exit code check, so a
    task killed by its timeout is TIMEOUT whatever the user container
    reported.
    """
    if raw_status != RAW_STOPPED:
        return _PASS_THROUGH.get(raw_status or "", ExecutionStatus.UNKNOWN)
    if timeout_exit_code == TIMEOUT_EXIT_CODE:
        return ExecutionStatus.TIMEOUT
    if user_exit_code is None:
        return ExecutionStatus.UNKNOWN
    if user_exit_code == 0:
        return ExecutionStatus.SUCCESS
    return ExecutionStatus.FAILED


def is_running(status: ExecutionStatus) -> bool:
    """Return True unless the status is a finished outcome or a skipped fire."""
    return status not in _FINISHED
