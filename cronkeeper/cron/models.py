"""Cron and execution data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from cronkeeper.cron.status import RAW_SKIPPED, ExecutionStatus, classify
from cronkeeper.cron.tasks import Task

DEFAULT_TIMEOUT_SECONDS = 86_400
EXECUTION_RETENTION = timedelta(days=14)

CAPACITY_SIZES: dict[str, int] = {
    "XS": 1,
    "S": 2,
    "M": 3,
    "L": 4,
    "XL": 5,
    "XXL": 6,
    "2XL": 6,
    "XXXL": 7,
    "3XL": 7,
}
_MIN_SIZE = 1
_MAX_SIZE = 7
_CPU_SHIFT = 4
_MEMORY_SHIFT = 5


def capacity_units(value: str, shift: int) -> int:
    """Translate a T-shirt size or a raw unit count into platform units."""
    size = CAPACITY_SIZES.get(value)
    if size is not None:
        return 1 << (size + shift)
    if value.isdigit():
        units = int(value)
        if 1 << (_MIN_SIZE + shift) <= units <= 1 << (_MAX_SIZE + shift):
            return units
        raise ValueError(
            f"capacity {units} outside [{1 << (_MIN_SIZE + shift)}, {1 << (_MAX_SIZE + shift)}]"
        )
    raise ValueError(f"unknown capacity size {value!r}")


class CapacityDescription(BaseModel):
    """Resource class of the user container."""

    cpu: str = "XS"
    memory: str = "XS"

    @field_validator("cpu", "memory", mode="before")
    @classmethod
    def _normalize(cls, value: object) -> str:
        if value is None or value == "":
            return "XS"
        return str(value).strip().upper()

    def cpu_units(self) -> int:
        return capacity_units(self.cpu, _CPU_SHIFT)

    def memory_mib(self) -> int:
        return capacity_units(self.memory, _MEMORY_SHIFT)


class LoggingDescription(BaseModel):
    """Log shipping options of the user container."""

    types: list[str] = Field(default_factory=list)


class ContainerDescription(BaseModel):
    """User container of a cron."""

    image: str
    arguments: list[str] = Field(default_factory=list)
    environment: dict[str, str] = Field(default_factory=dict)
    capacity: CapacityDescription = Field(default_factory=CapacityDescription)
    logging: LoggingDescription | None = None


class NotificationDescription(BaseModel):
    """Heartbeat monitoring rules for a cron."""

    model_config = ConfigDict(populate_by_name=True)

    no_run_threshold: int | None = Field(default=None, alias="noRunThreshold")
    ran_longer_than_threshold: int | None = Field(default=None, alias="ranLongerThanThreshold")
    pagerduty_key: str | None = Field(default=None, alias="pagerdutyKey")
    slack_channel: str | None = Field(default=None, alias="slackChannel")


class CronDescription(BaseModel):
    """User-submitted job description, immutable per revision."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    schedule: str
    timeout: int | None = None
    container: ContainerDescription = Field(
        validation_alias=AliasChoices("container", "description"),
    )
    notifications: NotificationDescription | None = None

    @property
    def effective_timeout(self) -> int:
        return self.timeout if self.timeout is not None else DEFAULT_TIMEOUT_SECONDS


@dataclass(slots=True)
class Cron:
    """A provisioned cron and the platform resources that back it."""

    name: str
    description: CronDescription
    rule_arn: str = ""
    task_definition_family: str = ""
    latest_task_definition_arn: str = ""
    monitor_id: str | None = None


def _truncate(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.replace(microsecond=0)


@dataclass(slots=True)
class Execution:
    """One invocation of a cron, keyed by (cron_name, task_id)."""

    cron_name: str
    task_id: str
    task_arn: str
    raw_status: str
    version: int
    expiry_time: int
    start_time: datetime | None = None
    end_time: datetime | None = None
    user_exit_code: int | None = None
    timeout_exit_code: int | None = None
    reason: str | None = None

    @property
    def status(self) -> ExecutionStatus:
        return classify(self.raw_status, self.user_exit_code, self.timeout_exit_code)

    @classmethod
    def from_task(cls, cron_name: str, task: Task, now: datetime) -> Execution:
        """Build the record for a task snapshot.

        ``expiry_time`` is the task creation time plus the retention window,
        falling back to ``now`` when the platform did not report a creation time.
        """
        user = task.user_container()
        sidecar = task.timeout_container()
        created = _truncate(task.created_at or now)
        return cls(
            cron_name=cron_name,
            task_id=task.task_id,
            task_arn=task.task_arn,
            raw_status=task.last_status,
            version=task.version,
            expiry_time=int((created + EXECUTION_RETENTION).timestamp()),
            start_time=_truncate(task.started_at) or created,
            end_time=_truncate(task.stopped_at),
            user_exit_code=user.exit_code if user is not None else None,
            timeout_exit_code=sidecar.exit_code if sidecar is not None else None,
            reason=(user.reason if user is not None and user.reason else task.stopped_reason),
        )

    @classmethod
    def skipped(cls, cron_name: str, now: datetime) -> Execution:
        """Build the marker for a scheduled fire that was not run."""
        fired = _truncate(now)
        return cls(
            cron_name=cron_name,
            task_id=f"skipped-{int(fired.timestamp())}",
            task_arn="",
            raw_status=RAW_SKIPPED,
            version=1,
            expiry_time=int((fired + EXECUTION_RETENTION).timestamp()),
            start_time=fired,
            end_time=fired,
            reason="previous execution still running",
        )

    def is_expired(self, now: datetime) -> bool:
        return now.timestamp() >= self.expiry_time
