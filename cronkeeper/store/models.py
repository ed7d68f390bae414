"""ORM models for cron, execution and lock persistence."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from cronkeeper.db import Base


class CronORM(Base):
    """Provisioned cron and the platform resources backing it."""

    __tablename__ = "crons"
    __table_args__ = (Index("idx_crons_rule_arn", "rule_arn"),)

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    description: Mapped[dict] = mapped_column(JSONB, nullable=False)
    rule_arn: Mapped[str] = mapped_column(Text, nullable=False, default="")
    task_definition_family: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    latest_task_definition_arn: Mapped[str] = mapped_column(Text, nullable=False, default="")
    monitor_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class ExecutionORM(Base):
    """One observed invocation of a cron, guarded by a monotonic version."""

    __tablename__ = "executions"
    __table_args__ = (
        Index("idx_executions_cron_start", "cron_name", "start_time"),
        Index("idx_executions_task_id", "task_id"),
        Index("idx_executions_expiry_time", "expiry_time"),
    )

    cron_name: Mapped[str] = mapped_column(String(64), primary_key=True)
    task_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    task_arn: Mapped[str] = mapped_column(Text, nullable=False)
    raw_status: Mapped[str] = mapped_column(String(32), nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expiry_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    user_exit_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    timeout_exit_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class LockORM(Base):
    """Named lease record."""

    __tablename__ = "locks"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
