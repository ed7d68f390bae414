"""Shared test fixtures and collection-time service gating for cronkeeper."""

from __future__ import annotations

import os
import socket
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlparse

import pytest

from cronkeeper.cron.tasks import Task


def _is_port_open(host: str, port: int, timeout: float = 0.5) -> bool:
    """Return True when host:port accepts TCP connections."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(timeout)
        return sock.connect_ex((host, port)) == 0


def _host_port_from_url(url: str, default_port: int) -> tuple[str, int]:
    parsed = urlparse(url)
    host = parsed.hostname or "localhost"
    port = parsed.port or default_port
    return host, port


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip PostgreSQL-dependent tests when the database is unreachable."""
    db_url = os.getenv("CRONKEEPER_DATABASE_URL")
    if db_url:
        host, port = _host_port_from_url(db_url, default_port=5432)
        available = _is_port_open(host, port)
        reason = f"PostgreSQL is not available on {host}:{port}"
    else:
        available = False
        reason = "CRONKEEPER_DATABASE_URL is not set"
    for item in items:
        if item.get_closest_marker("requires_postgres") is not None and not available:
            item.add_marker(pytest.mark.skip(reason=reason))


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def build_task(
    *,
    cron_container: str = "cron--daily-report",
    task_id: str = "task-1",
    version: int = 1,
    last_status: str = "RUNNING",
    desired_status: str = "RUNNING",
    user_exit_code: int | None = None,
    timeout_exit_code: int | None = None,
    created_at: datetime | None = None,
    started_at: datetime | None = None,
    stopped_at: datetime | None = None,
    with_sidecar: bool = True,
) -> Task:
    containers: list[dict[str, Any]] = [
        {"name": cron_container, "exitCode": user_exit_code, "lastStatus": last_status},
    ]
    if with_sidecar:
        containers.append({"name": "timeout", "exitCode": timeout_exit_code, "lastStatus": last_status})
    return Task.model_validate(
        {
            "taskArn": f"arn:aws:ecs:eu-west-1:123456789012:task/cluster/{task_id}",
            "taskDefinitionArn": "arn:aws:ecs:eu-west-1:123456789012:task-definition/cron--daily-report:3",
            "lastStatus": last_status,
            "desiredStatus": desired_status,
            "version": version,
            "createdAt": (created_at or datetime(2024, 3, 1, 11, 59, 30, tzinfo=timezone.utc)).isoformat(),
            "startedAt": started_at.isoformat() if started_at else None,
            "stoppedAt": stopped_at.isoformat() if stopped_at else None,
            "containers": containers,
        }
    )


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """Factory for platform task snapshots."""
    return build_task
