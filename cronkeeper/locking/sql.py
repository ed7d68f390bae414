"""PostgreSQL-backed lock manager."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cronkeeper.errors import LockLostError, LockTakenError
from cronkeeper.store.models import LockORM
from cronkeeper.store.sql import translate_backend_errors

logger = logging.getLogger(__name__)


class SqlLockManager:
    """Lease records in the ``locks`` table.

    Acquisition inserts with ``ON CONFLICT DO NOTHING`` so that of two
    contenders racing for an absent or just-expired lease only one row wins.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def acquire(self, name: str, ttl: timedelta) -> None:
        now = self._clock()
        with translate_backend_errors("lock acquire"):
            async with self._session_factory() as session:
                current = await session.scalar(select(LockORM).where(LockORM.name == name))
                if current is not None and now >= current.expiry:
                    logger.info("lock_expired name=%s expiry=%s", name, current.expiry.isoformat())
                    await session.execute(
                        delete(LockORM).where(LockORM.name == name, LockORM.expiry == current.expiry)
                    )
                stmt = (
                    pg_insert(LockORM)
                    .values(name=name, expiry=now + ttl)
                    .on_conflict_do_nothing(index_elements=[LockORM.name])
                )
                result = await session.execute(stmt)
                await session.commit()
        if not result.rowcount:
            raise LockTakenError(name)

    async def refresh(self, name: str, ttl: timedelta) -> None:
        with translate_backend_errors("lock refresh"):
            async with self._session_factory() as session:
                current = await session.scalar(select(LockORM).where(LockORM.name == name))
                if current is None:
                    raise LockLostError(name)
                current.expiry = self._clock() + ttl
                await session.commit()

    async def release(self, name: str) -> None:
        with translate_backend_errors("lock release"):
            async with self._session_factory() as session:
                await session.execute(delete(LockORM).where(LockORM.name == name))
                await session.commit()
