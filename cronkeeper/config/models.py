"""Configuration models for cronkeeper."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    addr: str = Field(default=":8000", description="Listen address, host:port or :port.")
    shutdown_timeout: float = Field(default=10.0, ge=0.0)
    request_timeout: float = Field(default=10.0, gt=0.0)

    @property
    def host(self) -> str:
        host, _, _ = self.addr.rpartition(":")
        return host or "0.0.0.0"

    @property
    def port(self) -> int:
        _, _, port = self.addr.rpartition(":")
        return int(port)

    @field_validator("addr")
    @classmethod
    def _validate_addr(cls, value: str) -> str:
        _, sep, port = value.strip().rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"addr must look like host:port or :port, got {value!r}")
        return value.strip()


class WorkerConfig(BaseModel):
    """Event worker and leader lock configuration."""

    queue_url: str = Field(default="")
    lock_name: str = Field(default="cronkeeper-worker")
    lock_refresh_interval: float = Field(default=60.0, gt=0.0)
    queue_poll_interval: float = Field(default=1.0, gt=0.0)
    max_messages: int = Field(default=10, ge=1, le=10)
    wait_seconds: int = Field(default=5, ge=0, le=20)
    retention_sweep_interval: float = Field(default=3600.0, gt=0.0)


class SchedulerConfig(BaseModel):
    """Container platform configuration for provisioned crons."""

    cron_name_prefix: str = Field(default="cron--")
    datacenter: str = Field(default="")
    cluster: str = Field(default="")
    trigger_topic_arn: str = Field(default="")
    timeout_image: str = Field(default="")
    run_identifier: str = Field(default="cronkeeper")
    log_group: str = Field(default="")

    @field_validator("cron_name_prefix")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        if not value:
            raise ValueError("cron_name_prefix must not be empty")
        return value


class DatabaseConfig(BaseModel):
    """Persistence configuration."""

    url: str = Field(default="")
    pool_size: int = Field(default=20, ge=1)
    echo: bool = False


class AwsConfig(BaseModel):
    """AWS client configuration."""

    region: str = Field(default="eu-west-1")
    iam_role: str = Field(default="")


class VaultConfig(BaseModel):
    """Secrets backend configuration."""

    address: str = Field(default="")
    role_id: str = Field(default="")

    @property
    def enabled(self) -> bool:
        return bool(self.address and self.role_id)


class CronitorConfig(BaseModel):
    """Heartbeat monitor configuration."""

    api_key: str = Field(default="")
    auth_key: str = Field(default="")
    api_url: str = Field(default="https://cronitor.io/v3")
    ping_url: str = Field(default="https://cronitor.link")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


class CircuitBreakerConfig(BaseModel):
    """Circuit breaker configuration for outbound calls."""

    timeout_seconds: float = Field(default=6.0, gt=0.0)
    failure_threshold: int = Field(default=5, ge=1)
    recovery_timeout: float = Field(default=30.0, gt=0.0)


class CronkeeperSettings(BaseSettings):
    """Root configuration model for cronkeeper."""

    log_level: str = Field(default="INFO")
    server: ServerConfig = Field(default_factory=ServerConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    aws: AwsConfig = Field(default_factory=AwsConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)
    cronitor: CronitorConfig = Field(default_factory=CronitorConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)

    model_config = SettingsConfigDict(
        env_prefix="CRONKEEPER_",
        env_nested_delimiter="__",
        extra="ignore",
    )
