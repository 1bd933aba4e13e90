"""Persistence layer exceptions.

Every SQLAlchemy error raised by a repository is wrapped in one of these, so
callers can catch PersistenceError alone.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Database URL is invalid or the engine could not connect."""

    pass


class RecordNotFoundError(PersistenceError):
    """A record required by the caller does not exist.

    Optional lookups return None instead.
    """

    pass


class DataIntegrityError(PersistenceError):
    """A primary key or other constraint was violated."""

    pass
