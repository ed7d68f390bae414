"""Validation of user-submitted cron descriptions."""

from __future__ import annotations

import re

from cronkeeper.cron.models import CronDescription, NotificationDescription
from cronkeeper.errors import InvalidInputError

MAX_CRON_NAME_LENGTH = 64
MIN_THRESHOLD_SECONDS = 60
_NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")
_IMAGE_PATTERN = re.compile(r"^[^\s]+$")


def validate_name(name: str) -> None:
    if len(name) > MAX_CRON_NAME_LENGTH:
        raise InvalidInputError(f"cron name {name} is too long (max length is {MAX_CRON_NAME_LENGTH})")
    if not _NAME_PATTERN.match(name):
        raise InvalidInputError(
            f"'{name}' is not a valid cron name. Please choose your crons name from the alphabet [a-z0-9-]+"
        )


def validate_notifications(notifications: NotificationDescription) -> None:
    if not notifications.pagerduty_key and not notifications.slack_channel:
        raise InvalidInputError("notifications require a pagerduty key or a slack channel")
    thresholds = {
        "no-run-threshold": notifications.no_run_threshold,
        "ran-longer-than-threshold": notifications.ran_longer_than_threshold,
    }
    if all(value is None for value in thresholds.values()):
        raise InvalidInputError(
            "At least no-run-threshold or ran-longer-than-threshold has to be configured when using notifications"
        )
    for label, value in thresholds.items():
        if value is not None and value < MIN_THRESHOLD_SECONDS:
            raise InvalidInputError(f"The value of {label} has to be at least {MIN_THRESHOLD_SECONDS} seconds")


def validate_description(description: CronDescription) -> None:
    """Raise InvalidInputError for the first problem found in ``description``."""
    validate_name(description.name)
    if not description.schedule.strip():
        raise InvalidInputError("Every cron requires a schedule")
    if description.timeout is not None and description.timeout <= 0:
        raise InvalidInputError("timeout has to be a positive number of seconds")

    container = description.container
    if not container.image or not _IMAGE_PATTERN.match(container.image):
        raise InvalidInputError(f"'{container.image}' is not a valid docker image")
    try:
        container.capacity.cpu_units()
        container.capacity.memory_mib()
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc

    if description.notifications is not None:
        validate_notifications(description.notifications)
