"""Persistence layer for contacts, job postings and digest logs.

Public API:
    - init_database(database_url) / get_session() / close_database() / get_engine()
    - ContactRepository, JobRepository, DigestLogRepository
    - PersistenceError and its subclasses

Example usage:
    >>> from jobdigest.persistence import init_database, get_session, JobRepository
    >>> init_database("sqlite:///./data/job_digest.db")
    >>> with get_session() as session:
    ...     pending = JobRepository(session).fetch_pending_jobs(limit=100)
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import ContactRepository, DigestLogRepository, JobRepository

__all__ = [
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    "ContactRepository",
    "JobRepository",
    "DigestLogRepository",
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
