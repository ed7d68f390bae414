"""Prometheus metrics for cron executions and event processing."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

__all__ = ["CONTENT_TYPE_LATEST", "CronkeeperMetrics"]


class CronkeeperMetrics:
    """Counters owned by one runtime.

    Each instance registers into its own registry so several runtimes (and
    tests) can coexist in one process.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.executions_triggered = Counter(
            "executions_triggered_total",
            "Cron executions triggered, by trigger outcome",
            ["cron_name", "type"],
            registry=self.registry,
        )
        self.executions_activated = Counter(
            "executions_activated_total",
            "Cron executions observed starting",
            ["cron_name"],
            registry=self.registry,
        )
        self.executions_finished = Counter(
            "executions_finished_total",
            "Cron executions observed stopping, by classified status",
            ["cron_name", "type"],
            registry=self.registry,
        )
        self.event_errors = Counter(
            "ecs_events_errors_total",
            "Task state change events that failed processing",
            registry=self.registry,
        )

    def record_triggered(self, cron_name: str, outcome: str) -> None:
        self.executions_triggered.labels(cron_name=cron_name, type=outcome).inc()

    def record_activated(self, cron_name: str) -> None:
        self.executions_activated.labels(cron_name=cron_name).inc()

    def record_finished(self, cron_name: str, status: str) -> None:
        self.executions_finished.labels(cron_name=cron_name, type=status.lower()).inc()

    def record_event_error(self) -> None:
        self.event_errors.inc()

    def sample(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Return the current value of a sample, 0.0 when it was never recorded."""
        value = self.registry.get_sample_value(name, labels or {})
        return float(value or 0.0)

    def export(self) -> bytes:
        return generate_latest(self.registry)
