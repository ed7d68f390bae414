"""Cron store: durable record of provisioned crons."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cronkeeper.cron.models import Cron, CronDescription
from cronkeeper.errors import NotFoundError
from cronkeeper.store.models import CronORM
from cronkeeper.store.sql import translate_backend_errors


class InMemoryCronStore:
    """Process-local cron store."""

    def __init__(self) -> None:
        self._crons: dict[str, Cron] = {}
        self._lock = asyncio.Lock()

    async def save(self, cron: Cron) -> None:
        async with self._lock:
            self._crons[cron.name] = replace(cron)

    async def get_by_name(self, name: str) -> Cron:
        async with self._lock:
            cron = self._crons.get(name)
        if cron is None:
            raise NotFoundError("cron", name)
        return replace(cron)

    async def get_by_rule_arn(self, rule_arn: str) -> Cron:
        async with self._lock:
            for cron in self._crons.values():
                if cron.rule_arn == rule_arn:
                    return replace(cron)
        raise NotFoundError("cron", rule_arn)

    async def list_names(self) -> list[str]:
        async with self._lock:
            return sorted(self._crons)

    async def delete(self, name: str) -> None:
        async with self._lock:
            if self._crons.pop(name, None) is None:
                raise NotFoundError("cron", name)


def _to_cron(row: CronORM) -> Cron:
    return Cron(
        name=row.name,
        description=CronDescription.model_validate(row.description),
        rule_arn=row.rule_arn,
        task_definition_family=row.task_definition_family,
        latest_task_definition_arn=row.latest_task_definition_arn,
        monitor_id=row.monitor_id,
    )


class SqlCronStore:
    """PostgreSQL cron store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, cron: Cron) -> None:
        values = {
            "name": cron.name,
            "description": cron.description.model_dump(mode="json", by_alias=True),
            "rule_arn": cron.rule_arn,
            "task_definition_family": cron.task_definition_family,
            "latest_task_definition_arn": cron.latest_task_definition_arn,
            "monitor_id": cron.monitor_id,
        }
        stmt = pg_insert(CronORM).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[CronORM.name],
            set_={key: stmt.excluded[key] for key in values if key != "name"},
        )
        with translate_backend_errors("cron save"):
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()

    async def get_by_name(self, name: str) -> Cron:
        with translate_backend_errors("cron lookup"):
            async with self._session_factory() as session:
                row = await session.scalar(select(CronORM).where(CronORM.name == name))
        if row is None:
            raise NotFoundError("cron", name)
        return _to_cron(row)

    async def get_by_rule_arn(self, rule_arn: str) -> Cron:
        with translate_backend_errors("cron lookup"):
            async with self._session_factory() as session:
                row = await session.scalar(select(CronORM).where(CronORM.rule_arn == rule_arn))
        if row is None:
            raise NotFoundError("cron", rule_arn)
        return _to_cron(row)

    async def list_names(self) -> list[str]:
        with translate_backend_errors("cron list"):
            async with self._session_factory() as session:
                result = await session.execute(select(CronORM.name).order_by(CronORM.name.asc()))
                return list(result.scalars().all())

    async def delete(self, name: str) -> None:
        with translate_backend_errors("cron delete"):
            async with self._session_factory() as session:
                result = await session.execute(delete(CronORM).where(CronORM.name == name))
                await session.commit()
        if not result.rowcount:
            raise NotFoundError("cron", name)
