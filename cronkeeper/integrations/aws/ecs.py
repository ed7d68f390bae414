"""ECS task definitions and task runs for crons."""

from __future__ import annotations

import logging
from typing import Any

from cronkeeper.cron.models import CronDescription
from cronkeeper.cron.naming import DEFAULT_PREFIX, resource_name
from cronkeeper.cron.status import TIMEOUT_EXIT_CODE
from cronkeeper.cron.tasks import TIMEOUT_CONTAINER_NAME, Task
from cronkeeper.errors import PermanentBackendError
from cronkeeper.integrations.aws.session import AwsSessionProvider, translate_aws_errors
from cronkeeper.integrations.vault import SECRET_REFERENCE_KEY_PREFIX, VaultSecretProvider

logger = logging.getLogger(__name__)

CRON_LABEL = "com.cronkeeper.cron"
LOG_TYPES_LABEL = "com.cronkeeper.logtypes"
TIMEOUT_SIDECAR_CPU = 16
TIMEOUT_SIDECAR_MEMORY = 32


class EcsTaskDefinitionStore:
    """Register, run and retire the task definitions backing crons."""

    def __init__(
        self,
        sessions: AwsSessionProvider,
        *,
        cluster: str,
        timeout_image: str,
        run_identifier: str = "cronkeeper",
        cron_prefix: str = DEFAULT_PREFIX,
        secrets: VaultSecretProvider | None = None,
    ) -> None:
        self._sessions = sessions
        self.cluster = cluster
        self.timeout_image = timeout_image
        self.run_identifier = run_identifier
        self.cron_prefix = cron_prefix
        self._secrets = secrets

    async def _environment(self, cron_name: str, description: CronDescription) -> dict[str, str]:
        env: dict[str, str] = {}
        for key, value in description.container.environment.items():
            if not key.startswith(SECRET_REFERENCE_KEY_PREFIX):
                env[key] = value
                continue
            if self._secrets is None:
                raise PermanentBackendError(f"secret reference {key!r} requires a configured secrets backend")
            env.update(await self._secrets.values(value))
        if self._secrets is not None:
            role_id = await self._secrets.role_id(cron_name)
            if role_id:
                env["VAULT_ADDR"] = self._secrets.address
                env["VAULT_ROLE_ID"] = role_id
        return env

    async def container_definitions(self, cron_name: str, description: CronDescription) -> list[dict[str, Any]]:
        """Build the user container and timeout sidecar definitions."""
        container = description.container
        env = await self._environment(cron_name, description)
        logging_types = container.logging.types if container.logging is not None else []
        user = {
            "name": resource_name(cron_name, self.cron_prefix),
            "image": container.image,
            "command": list(container.arguments),
            "cpu": container.capacity.cpu_units(),
            "memory": container.capacity.memory_mib(),
            "environment": [{"name": key, "value": value} for key, value in sorted(env.items())],
            "dockerLabels": {CRON_LABEL: cron_name, LOG_TYPES_LABEL: ",".join(logging_types)},
            "essential": True,
        }
        sidecar = {
            "name": TIMEOUT_CONTAINER_NAME,
            "image": self.timeout_image,
            "command": [str(description.effective_timeout), str(TIMEOUT_EXIT_CODE)],
            "cpu": TIMEOUT_SIDECAR_CPU,
            "memory": TIMEOUT_SIDECAR_MEMORY,
            "dockerLabels": {CRON_LABEL: cron_name},
            "essential": True,
        }
        return [user, sidecar]

    async def add_revision(self, cron_name: str, description: CronDescription) -> tuple[str, str]:
        """Register a new revision and return ``(task_definition_arn, family)``."""
        family = resource_name(cron_name, self.cron_prefix)
        definitions = await self.container_definitions(cron_name, description)
        with translate_aws_errors(f"register task definition {family}"):
            async with self._sessions.client("ecs") as client:
                response = await client.register_task_definition(
                    family=family,
                    containerDefinitions=definitions,
                )
        arn = str(response["taskDefinition"]["taskDefinitionArn"])
        logger.info("task_definition_registered family=%s arn=%s", family, arn)
        return arn, family

    async def delete_family(self, family: str) -> None:
        """Deregister every revision of a family. Single revision failures are logged."""
        with translate_aws_errors(f"list task definitions {family}"):
            async with self._sessions.client("ecs") as client:
                paginator = client.get_paginator("list_task_definitions")
                async for page in paginator.paginate(familyPrefix=family):
                    for arn in page.get("taskDefinitionArns", []):
                        try:
                            await client.deregister_task_definition(taskDefinition=arn)
                        except Exception:
                            logger.exception("task_definition_deregister_failed arn=%s", arn)

    async def run_task(self, task_definition_arn: str) -> Task:
        with translate_aws_errors(f"run task {task_definition_arn}"):
            async with self._sessions.client("ecs") as client:
                response = await client.run_task(
                    cluster=self.cluster,
                    taskDefinition=task_definition_arn,
                    startedBy=self.run_identifier,
                )
        failures = response.get("failures") or []
        if failures:
            raise PermanentBackendError(f"couldn't start task: {failures[0].get('reason', 'unknown')}")
        tasks = response.get("tasks") or []
        if not tasks:
            raise PermanentBackendError("task status unknown after run")
        return Task.model_validate(tasks[0])

    async def running_task_arns(self, family: str) -> list[str]:
        with translate_aws_errors(f"list running tasks {family}"):
            async with self._sessions.client("ecs") as client:
                response = await client.list_tasks(
                    cluster=self.cluster,
                    family=family,
                    desiredStatus="RUNNING",
                )
        return [str(arn) for arn in response.get("taskArns", [])]
