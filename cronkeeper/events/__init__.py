"""Cron events: dispatcher, listeners and the queue-driven worker."""

from cronkeeper.events.dispatcher import EventDispatcher, Listener, ListenerError
from cronkeeper.events.listeners import (
    ExecutionMetricsRecorder,
    ExecutionStatePersister,
    HeartbeatNotifier,
    register_listeners,
)
from cronkeeper.events.models import CronEvent, EventContext, derive_event
from cronkeeper.events.worker import EventWorker, MessageOutcome, WorkerSettings

__all__ = [
    "CronEvent",
    "EventContext",
    "EventDispatcher",
    "EventWorker",
    "ExecutionMetricsRecorder",
    "ExecutionStatePersister",
    "HeartbeatNotifier",
    "Listener",
    "ListenerError",
    "MessageOutcome",
    "WorkerSettings",
    "derive_event",
    "register_listeners",
]
