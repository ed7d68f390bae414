"""Declarative base for cronkeeper ORM models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all cronkeeper ORM models. Exposes metadata for Alembic."""
