"""Mapping between cron names and platform resource names."""

from __future__ import annotations

DEFAULT_PREFIX = "cron--"


def resource_name(cron_name: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Return the platform resource name (task family, rule, container) for a cron."""
    return f"{prefix}{cron_name}"


def cron_name_from_resource(resource: str, prefix: str = DEFAULT_PREFIX) -> str | None:
    """Return the cron name for a prefixed resource, or None when it is not a cron."""
    if not resource.startswith(prefix) or len(resource) == len(prefix):
        return None
    return resource[len(prefix) :]
