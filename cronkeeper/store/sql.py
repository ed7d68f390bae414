"""Shared helpers for SQL-backed stores."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from cronkeeper.errors import PermanentBackendError, TransientBackendError


@contextmanager
def translate_backend_errors(operation: str) -> Iterator[None]:
    """Map SQLAlchemy failures onto transient and permanent backend errors."""
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError, OSError) as exc:
        raise TransientBackendError(f"{operation} failed: {exc.__class__.__name__}") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise TransientBackendError(f"{operation} failed: connection invalidated") from exc
        raise PermanentBackendError(f"{operation} failed: {exc.__class__.__name__}") from exc
    except SQLAlchemyError as exc:
        raise PermanentBackendError(f"{operation} failed: {exc.__class__.__name__}") from exc
