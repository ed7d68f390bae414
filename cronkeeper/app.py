"""Runtime assembly: builds every component once and runs them together."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import uvicorn
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from cronkeeper.api.app import create_app
from cronkeeper.config.models import CronkeeperSettings
from cronkeeper.db import create_engine, create_session_factory
from cronkeeper.events.dispatcher import EventDispatcher
from cronkeeper.events.listeners import register_listeners
from cronkeeper.events.worker import EventWorker, WorkerSettings
from cronkeeper.integrations.aws import (
    AwsSessionProvider,
    CloudWatchLogReader,
    CloudWatchRuleManager,
    EcsTaskDefinitionStore,
)
from cronkeeper.integrations.circuit_breaker import CircuitBreaker
from cronkeeper.integrations.cronitor import CronitorClient
from cronkeeper.integrations.queue_adapters import SqsQueueAdapter
from cronkeeper.integrations.vault import CredentialRefresher, VaultClient, VaultSecretProvider
from cronkeeper.locking.sql import SqlLockManager
from cronkeeper.metrics import CronkeeperMetrics
from cronkeeper.service.lifecycle import CronService
from cronkeeper.store.crons import SqlCronStore
from cronkeeper.store.executions import SqlExecutionStore
from cronkeeper.store.retention import RetentionSweeper

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


@dataclass
class CronkeeperRuntime:
    """Every long-lived component of one cronkeeper process."""

    settings: CronkeeperSettings
    service: CronService
    worker: EventWorker
    app: FastAPI
    metrics: CronkeeperMetrics
    sweeper: RetentionSweeper | None = None
    credentials: CredentialRefresher | None = None
    engine: AsyncEngine | None = None
    _background: list[asyncio.Task[Any]] = field(default_factory=list)

    async def run(self) -> int:
        """Serve HTTP and process events until shutdown. Returns the exit code."""
        stop = asyncio.Event()
        if self.credentials is not None:
            # First credentials must be in place before any AWS call.
            await self.credentials.refresh_once()
            self._background.append(asyncio.create_task(self.credentials.run(stop), name="cronkeeper-credentials"))
        if self.sweeper is not None:
            self._background.append(asyncio.create_task(self.sweeper.run(stop), name="cronkeeper-retention"))

        server_settings = self.settings.server
        server = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=server_settings.host,
                port=server_settings.port,
                log_level=self.settings.log_level.lower(),
                timeout_graceful_shutdown=int(server_settings.shutdown_timeout),
            )
        )
        server_task = asyncio.create_task(server.serve(), name="cronkeeper-http")
        worker_task = asyncio.create_task(self.worker.run(stop), name="cronkeeper-worker")

        exit_code = 0
        try:
            done, _ = await asyncio.wait({server_task, worker_task}, return_when=asyncio.FIRST_COMPLETED)
            if worker_task in done and worker_task.exception() is not None:
                logger.error("worker_failed error=%s", worker_task.exception())
                exit_code = 1
            if server_task in done and server_task.exception() is not None:
                logger.error("http_server_failed error=%s", server_task.exception())
                exit_code = 1
        finally:
            stop.set()
            server.should_exit = True
            await asyncio.gather(server_task, worker_task, *self._background, return_exceptions=True)
            self._background.clear()
            if self.engine is not None:
                await self.engine.dispose()
        logger.info("cronkeeper_stopped exit_code=%d", exit_code)
        return exit_code


def build_runtime(settings: CronkeeperSettings) -> CronkeeperRuntime:
    """Wire SQL stores, AWS adapters, Vault and Cronitor from settings."""
    metrics = CronkeeperMetrics()
    engine = create_engine(
        settings.database.url or None,
        pool_size=settings.database.pool_size,
        echo=settings.database.echo,
    )
    sessions_factory = create_session_factory(engine)
    crons = SqlCronStore(sessions_factory)
    executions = SqlExecutionStore(sessions_factory)

    aws_sessions = AwsSessionProvider(region=settings.aws.region)
    credentials: CredentialRefresher | None = None
    secrets: VaultSecretProvider | None = None
    if settings.vault.enabled:
        vault = VaultClient(address=settings.vault.address, role_id=settings.vault.role_id)
        secrets = VaultSecretProvider(vault)
        if settings.aws.iam_role:
            credentials = CredentialRefresher(vault, aws_role=settings.aws.iam_role, sessions=aws_sessions)

    breaker_settings = settings.circuit_breaker
    breaker = CircuitBreaker(
        timeout_seconds=breaker_settings.timeout_seconds,
        failure_threshold=breaker_settings.failure_threshold,
        recovery_timeout=breaker_settings.recovery_timeout,
    )
    monitor = None
    if settings.cronitor.enabled:
        monitor = CronitorClient(
            api_key=settings.cronitor.api_key,
            auth_key=settings.cronitor.auth_key,
            api_url=settings.cronitor.api_url,
            ping_url=settings.cronitor.ping_url,
            breaker=breaker,
        )

    scheduler = settings.scheduler
    service = CronService(
        crons=crons,
        executions=executions,
        task_definitions=EcsTaskDefinitionStore(
            aws_sessions,
            cluster=scheduler.cluster,
            timeout_image=scheduler.timeout_image,
            run_identifier=scheduler.run_identifier,
            cron_prefix=scheduler.cron_name_prefix,
            secrets=secrets,
        ),
        rules=CloudWatchRuleManager(aws_sessions, cron_prefix=scheduler.cron_name_prefix),
        logs=CloudWatchLogReader(aws_sessions, log_group=scheduler.log_group, cron_prefix=scheduler.cron_name_prefix),
        trigger_topic_arn=scheduler.trigger_topic_arn,
        monitor=monitor,
        metrics=metrics,
        cron_prefix=scheduler.cron_name_prefix,
    )

    dispatcher = EventDispatcher()
    register_listeners(dispatcher, executions=executions, crons=crons, monitor=monitor, metrics=metrics)
    worker_settings = settings.worker
    worker = EventWorker(
        lock_manager=SqlLockManager(sessions_factory),
        queue=SqsQueueAdapter(queue_url=worker_settings.queue_url, sessions=aws_sessions),
        dispatcher=dispatcher,
        settings=WorkerSettings(
            lock_name=worker_settings.lock_name,
            refresh_interval=worker_settings.lock_refresh_interval,
            poll_interval=worker_settings.queue_poll_interval,
            max_messages=worker_settings.max_messages,
            wait_seconds=worker_settings.wait_seconds,
            cron_prefix=scheduler.cron_name_prefix,
        ),
        metrics=metrics,
    )

    app = create_app(service, metrics=metrics, request_timeout=settings.server.request_timeout)
    return CronkeeperRuntime(
        settings=settings,
        service=service,
        worker=worker,
        app=app,
        metrics=metrics,
        sweeper=RetentionSweeper(executions, interval_seconds=worker_settings.retention_sweep_interval),
        credentials=credentials,
        engine=engine,
    )
