"""Configuration system for cronkeeper."""

from cronkeeper.config.loader import ConfigLoadError, YAMLConfigLoader, load_settings
from cronkeeper.config.models import (
    AwsConfig,
    CircuitBreakerConfig,
    CronitorConfig,
    CronkeeperSettings,
    DatabaseConfig,
    SchedulerConfig,
    ServerConfig,
    VaultConfig,
    WorkerConfig,
)

__all__ = [
    "AwsConfig",
    "CircuitBreakerConfig",
    "ConfigLoadError",
    "CronitorConfig",
    "CronkeeperSettings",
    "DatabaseConfig",
    "SchedulerConfig",
    "ServerConfig",
    "VaultConfig",
    "WorkerConfig",
    "YAMLConfigLoader",
    "load_settings",
]
