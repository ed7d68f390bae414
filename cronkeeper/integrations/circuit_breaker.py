"""Per-action circuit breaker with a call deadline."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from cronkeeper.errors import CircuitOpenError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker state."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(slots=True)
class _ActionState:
    state: CircuitState = CircuitState.CLOSED
    opened_at: float | None = None
    failures: int = 0


class CircuitBreaker:
    """Guard outbound calls keyed by action name.

    Every call runs under ``timeout_seconds``. After ``failure_threshold``
    consecutive failures an action is short-circuited for
    ``recovery_timeout`` seconds, then a single trial call is let through
    while other callers keep failing fast until it settles.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 6.0,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._actions: dict[str, _ActionState] = {}

    def state(self, action: str) -> CircuitState:
        return self._actions.get(action, _ActionState()).state

    async def call(self, action: str, operation: Callable[[], Awaitable[T]]) -> T:
        current = self._actions.setdefault(action, _ActionState())
        if current.state == CircuitState.HALF_OPEN:
            raise CircuitOpenError(action)
        if current.state == CircuitState.OPEN:
            elapsed = self._clock() - (current.opened_at or 0.0)
            if elapsed < self.recovery_timeout:
                raise CircuitOpenError(action)
            current.state = CircuitState.HALF_OPEN
        try:
            result = await asyncio.wait_for(operation(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            self._record_failure(action, current)
            raise UpstreamTimeoutError(f"{action} timed out after {self.timeout_seconds}s") from exc
        except asyncio.CancelledError:
            if current.state == CircuitState.HALF_OPEN:
                current.state = CircuitState.OPEN
            raise
        except Exception:
            self._record_failure(action, current)
            raise
        current.state = CircuitState.CLOSED
        current.failures = 0
        current.opened_at = None
        return result

    def _record_failure(self, action: str, current: _ActionState) -> None:
        current.failures += 1
        if current.state == CircuitState.HALF_OPEN or current.failures >= self.failure_threshold:
            current.state = CircuitState.OPEN
            current.opened_at = self._clock()
            logger.warning("circuit_opened action=%s failures=%d", action, current.failures)
