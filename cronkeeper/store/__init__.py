"""Cron and execution persistence."""

from cronkeeper.store.crons import InMemoryCronStore, SqlCronStore
from cronkeeper.store.executions import InMemoryExecutionStore, SqlExecutionStore, build_upsert
from cronkeeper.store.protocols import CronStore, ExecutionStore
from cronkeeper.store.retention import RetentionSweeper

__all__ = [
    "CronStore",
    "ExecutionStore",
    "InMemoryCronStore",
    "InMemoryExecutionStore",
    "RetentionSweeper",
    "SqlCronStore",
    "SqlExecutionStore",
    "build_upsert",
]
