"""Lease-based leader lock."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol, runtime_checkable

from cronkeeper.errors import LockLostError, LockTakenError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@runtime_checkable
class LockManager(Protocol):
    """Named lease with expiry.

    ``acquire`` raises :class:`LockTakenError` while an unexpired lease
    exists. ``refresh`` extends the lease unconditionally and raises
    :class:`LockLostError` when the record is gone. ``release`` deletes it.
    Ownership is not checked; callers only refresh a lease they acquired.
    """

    async def acquire(self, name: str, ttl: timedelta) -> None: ...

    async def refresh(self, name: str, ttl: timedelta) -> None: ...

    async def release(self, name: str) -> None: ...


class InMemoryLockManager:
    """Lock manager over a process-local table.

    Sharing one instance between several workers simulates a fleet of
    replicas contending for the same lease.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or _utc_now
        self._expiry: dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    async def acquire(self, name: str, ttl: timedelta) -> None:
        async with self._lock:
            now = self._clock()
            expiry = self._expiry.get(name)
            if expiry is not None and now >= expiry:
                logger.info("lock_expired name=%s expiry=%s", name, expiry.isoformat())
                del self._expiry[name]
                expiry = None
            if expiry is not None:
                raise LockTakenError(name)
            self._expiry[name] = now + ttl

    async def refresh(self, name: str, ttl: timedelta) -> None:
        async with self._lock:
            if name not in self._expiry:
                raise LockLostError(name)
            self._expiry[name] = self._clock() + ttl

    async def release(self, name: str) -> None:
        async with self._lock:
            self._expiry.pop(name, None)

    def expiry(self, name: str) -> datetime | None:
        return self._expiry.get(name)
