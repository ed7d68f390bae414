"""Distributed leader lock."""

from cronkeeper.errors import LockLostError, LockTakenError
from cronkeeper.locking.manager import InMemoryLockManager, LockManager
from cronkeeper.locking.sql import SqlLockManager

__all__ = [
    "InMemoryLockManager",
    "LockLostError",
    "LockManager",
    "LockTakenError",
    "SqlLockManager",
]
