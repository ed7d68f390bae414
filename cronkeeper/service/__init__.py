"""Cron lifecycle service."""

from cronkeeper.service.lifecycle import CronService, CronStatus, TriggerResult

__all__ = ["CronService", "CronStatus", "TriggerResult"]
