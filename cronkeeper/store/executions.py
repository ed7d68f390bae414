"""Execution store: monotonic last-writer-wins records with bounded retention."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cronkeeper.cron.models import Execution
from cronkeeper.cron.tasks import Task
from cronkeeper.errors import ConflictError, NotFoundError
from cronkeeper.store.models import ExecutionORM
from cronkeeper.store.sql import translate_backend_errors

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# expiry_time is written once, on insert, and never touched by a later version.
_MUTABLE_COLUMNS = (
    "task_arn",
    "raw_status",
    "version",
    "start_time",
    "end_time",
    "user_exit_code",
    "timeout_exit_code",
    "reason",
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(execution: Execution) -> tuple[float, str]:
    started = execution.start_time.timestamp() if execution.start_time is not None else float("-inf")
    return (started, execution.task_id)


class InMemoryExecutionStore:
    """Process-local execution store used for tests and single-node runs."""

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or _utc_now
        self._records: dict[tuple[str, str], Execution] = {}
        self._lock = asyncio.Lock()

    async def update(self, cron_name: str, task: Task) -> None:
        record = Execution.from_task(cron_name, task, self._clock())
        try:
            await self._put_if_newer(record)
        except ConflictError:
            logger.debug(
                "execution_update_skipped cron=%s task_id=%s version=%s",
                cron_name,
                record.task_id,
                record.version,
            )

    async def _put_if_newer(self, record: Execution) -> None:
        key = (record.cron_name, record.task_id)
        async with self._lock:
            stored = self._records.get(key)
            if stored is not None and stored.version >= record.version:
                raise ConflictError(f"stored version {stored.version} >= {record.version}")
            if stored is not None:
                record.expiry_time = stored.expiry_time
            self._records[key] = record

    async def last_n(self, cron_name: str, n: int) -> list[Execution]:
        if n <= 0:
            return []
        now = self._clock()
        async with self._lock:
            visible = [
                execution
                for (name, _), execution in self._records.items()
                if name == cron_name and not execution.is_expired(now)
            ]
        visible.sort(key=_sort_key, reverse=True)
        return visible[:n]

    async def get(self, task_id: str) -> Execution:
        now = self._clock()
        async with self._lock:
            for (_, stored_id), execution in self._records.items():
                if stored_id == task_id and not execution.is_expired(now):
                    return execution
        raise NotFoundError("execution", task_id)

    async def record_skipped(self, cron_name: str) -> Execution:
        record = Execution.skipped(cron_name, self._clock())
        async with self._lock:
            self._records.setdefault((cron_name, record.task_id), record)
        return record

    async def delete(self, cron_name: str) -> int:
        async with self._lock:
            doomed = [key for key in self._records if key[0] == cron_name]
            for key in doomed:
                del self._records[key]
        return len(doomed)

    async def delete_expired(self, now: datetime) -> int:
        async with self._lock:
            expired = [key for key, execution in self._records.items() if execution.is_expired(now)]
            for key in expired:
                del self._records[key]
        return len(expired)


def _to_values(record: Execution) -> dict[str, Any]:
    return {
        "cron_name": record.cron_name,
        "task_id": record.task_id,
        "task_arn": record.task_arn,
        "raw_status": record.raw_status,
        "version": record.version,
        "expiry_time": record.expiry_time,
        "start_time": record.start_time,
        "end_time": record.end_time,
        "user_exit_code": record.user_exit_code,
        "timeout_exit_code": record.timeout_exit_code,
        "reason": record.reason,
    }


def _to_execution(row: ExecutionORM) -> Execution:
    return Execution(
        cron_name=row.cron_name,
        task_id=row.task_id,
        task_arn=row.task_arn,
        raw_status=row.raw_status,
        version=row.version,
        expiry_time=row.expiry_time,
        start_time=row.start_time,
        end_time=row.end_time,
        user_exit_code=row.user_exit_code,
        timeout_exit_code=row.timeout_exit_code,
        reason=row.reason,
    )


def build_upsert(record: Execution) -> Any:
    """Build the conditional upsert for one execution snapshot.

    The row is written when no row exists for the key or when the stored
    version is strictly lower than the incoming one.
    """
    stmt = pg_insert(ExecutionORM).values(**_to_values(record))
    return stmt.on_conflict_do_update(
        index_elements=[ExecutionORM.cron_name, ExecutionORM.task_id],
        set_={column: stmt.excluded[column] for column in _MUTABLE_COLUMNS},
        where=ExecutionORM.version < stmt.excluded.version,
    )


class SqlExecutionStore:
    """PostgreSQL execution store.

    Reads hide records whose ``expiry_time`` has passed; physical removal is
    left to :class:`cronkeeper.store.retention.RetentionSweeper`.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or _utc_now

    async def update(self, cron_name: str, task: Task) -> None:
        record = Execution.from_task(cron_name, task, self._clock())
        try:
            await self._put_if_newer(record)
        except ConflictError:
            logger.debug(
                "execution_update_skipped cron=%s task_id=%s version=%s",
                cron_name,
                record.task_id,
                record.version,
            )

    async def _put_if_newer(self, record: Execution) -> None:
        with translate_backend_errors("execution update"):
            async with self._session_factory() as session:
                result = await session.execute(build_upsert(record))
                await session.commit()
        if not result.rowcount:
            raise ConflictError(f"stored version >= {record.version}")

    async def last_n(self, cron_name: str, n: int) -> list[Execution]:
        if n <= 0:
            return []
        now_ts = int(self._clock().timestamp())
        stmt = (
            select(ExecutionORM)
            .where(ExecutionORM.cron_name == cron_name, ExecutionORM.expiry_time > now_ts)
            .order_by(ExecutionORM.start_time.desc().nulls_last(), ExecutionORM.task_id.desc())
            .limit(n)
        )
        with translate_backend_errors("execution query"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = list(result.scalars().all())
        return [_to_execution(row) for row in rows][:n]

    async def get(self, task_id: str) -> Execution:
        now_ts = int(self._clock().timestamp())
        stmt = select(ExecutionORM).where(ExecutionORM.task_id == task_id, ExecutionORM.expiry_time > now_ts)
        with translate_backend_errors("execution lookup"):
            async with self._session_factory() as session:
                row = await session.scalar(stmt)
        if row is None:
            raise NotFoundError("execution", task_id)
        return _to_execution(row)

    async def record_skipped(self, cron_name: str) -> Execution:
        record = Execution.skipped(cron_name, self._clock())
        stmt = pg_insert(ExecutionORM).values(**_to_values(record)).on_conflict_do_nothing(
            index_elements=[ExecutionORM.cron_name, ExecutionORM.task_id],
        )
        with translate_backend_errors("execution skip"):
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        return record

    async def delete(self, cron_name: str) -> int:
        stmt = delete(ExecutionORM).where(ExecutionORM.cron_name == cron_name)
        with translate_backend_errors("execution delete"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        return int(result.rowcount or 0)

    async def delete_expired(self, now: datetime) -> int:
        stmt = delete(ExecutionORM).where(ExecutionORM.expiry_time <= int(now.timestamp()))
        with translate_backend_errors("execution retention"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        return int(result.rowcount or 0)
