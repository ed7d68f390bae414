"""Database-related exceptions for cronkeeper.

Messages never include connection credentials.
"""


class DatabaseError(Exception):
    """Base exception for database plumbing."""

    pass


class ConfigurationError(DatabaseError):
    """Raised when database configuration is invalid or missing."""

    pass
