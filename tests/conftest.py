"""Shared pytest fixtures."""

import pytest

from jobdigest.logging.context import clear_log_context
from jobdigest.persistence import close_database, init_database


@pytest.fixture
def database(tmp_path):
    """Initialize a throwaway SQLite database for the duration of a test."""
    db_url = f"sqlite:///{tmp_path / 'digest.db'}"
    init_database(db_url)
    yield db_url
    close_database()
    clear_log_context()
