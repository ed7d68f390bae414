"""cronkeeper database layer: Base, engine, session, exceptions."""

from cronkeeper.db.base import Base
from cronkeeper.db.engine import create_engine, resolve_url
from cronkeeper.db.exceptions import ConfigurationError, DatabaseError
from cronkeeper.db.session import create_session_factory

__all__ = [
    "Base",
    "ConfigurationError",
    "DatabaseError",
    "create_engine",
    "create_session_factory",
    "resolve_url",
]
