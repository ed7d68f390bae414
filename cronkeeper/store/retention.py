"""Periodic removal of expired execution records."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Callable

from cronkeeper.errors import CronkeeperError
from cronkeeper.store.protocols import ExecutionStore

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Drop executions past their expiry time on a fixed interval.

    Stands in for a native TTL facility on backends that lack one. Reads
    already hide expired records, so a late sweep never changes results.
    """

    def __init__(
        self,
        store: ExecutionStore,
        *,
        interval_seconds: float = 3600.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._interval = interval_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def sweep_once(self) -> int:
        removed = await self._store.delete_expired(self._clock())
        if removed:
            logger.info("execution_retention_sweep removed=%d", removed)
        return removed

    async def run(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                await self.sweep_once()
            except CronkeeperError:
                logger.exception("execution_retention_sweep_failed")
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop.wait(), timeout=self._interval)
