"""Error kinds shared across cronkeeper components.

Every failure that crosses a component boundary is one of these. The HTTP
layer maps them onto status codes; the event worker uses them to decide
between following, aborting and leaving a message unacknowledged.
"""

from __future__ import annotations


class CronkeeperError(Exception):
    """Base exception for cronkeeper."""


class NotFoundError(CronkeeperError):
    """Raised when a cron or execution does not exist."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class InvalidInputError(CronkeeperError):
    """Raised when user input fails validation."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Validation error: {message}")


class AlreadyExistsError(CronkeeperError):
    """Raised when creating something that already exists."""


class LockTakenError(CronkeeperError):
    """Raised when the leader lock is held by someone else."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"lock already taken: {name}")


class LockLostError(CronkeeperError):
    """Raised when refreshing a lock that no longer exists."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"cannot refresh non-existing lock: {name}")


class TransientBackendError(CronkeeperError):
    """Raised for retryable transport failures against a backend."""


class PermanentBackendError(CronkeeperError):
    """Raised for non-retryable backend failures."""


class ConflictError(CronkeeperError):
    """Raised when a conditional write loses against newer state."""


class UpstreamTimeoutError(CronkeeperError):
    """Raised when an outbound call exceeds its deadline."""


class CircuitOpenError(CronkeeperError):
    """Raised when an outbound action is short-circuited."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"circuit open for action: {action}")


class InternalError(CronkeeperError):
    """Raised for unexpected internal failures."""
