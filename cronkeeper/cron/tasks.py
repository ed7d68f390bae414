"""Task snapshots as reported by the container platform."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

TIMEOUT_CONTAINER_NAME = "timeout"


class Container(BaseModel):
    """One container inside a task snapshot."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    name: str
    exit_code: int | None = Field(default=None, alias="exitCode")
    last_status: str | None = Field(default=None, alias="lastStatus")
    reason: str | None = None


class Task(BaseModel):
    """Immutable snapshot of a task at one version."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    task_arn: str = Field(alias="taskArn")
    task_definition_arn: str | None = Field(default=None, alias="taskDefinitionArn")
    last_status: str = Field(default="UNKNOWN", alias="lastStatus")
    desired_status: str | None = Field(default=None, alias="desiredStatus")
    version: int = 0
    created_at: datetime | None = Field(default=None, alias="createdAt")
    started_at: datetime | None = Field(default=None, alias="startedAt")
    stopped_at: datetime | None = Field(default=None, alias="stoppedAt")
    stopped_reason: str | None = Field(default=None, alias="stoppedReason")
    containers: tuple[Container, ...] = ()

    @property
    def task_id(self) -> str:
        return task_id_from_arn(self.task_arn)

    def user_container(self) -> Container | None:
        """Return the first container that is not the timeout sidecar."""
        for container in self.containers:
            if container.name != TIMEOUT_CONTAINER_NAME:
                return container
        return None

    def timeout_container(self) -> Container | None:
        for container in self.containers:
            if container.name == TIMEOUT_CONTAINER_NAME:
                return container
        return None


def task_id_from_arn(task_arn: str) -> str:
    """Return the task id, the last path segment of a task ARN."""
    return task_arn.rsplit("/", 1)[-1]
