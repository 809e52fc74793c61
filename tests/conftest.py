"""
Shared fixtures for the logtrail test suite.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from logtrail.services.database import DatabaseService
from logtrail.services.stores import SqlStore


@pytest.fixture
def db(tmp_path):
    return DatabaseService(str(tmp_path / "logtrail-test.db"))


@pytest.fixture
def store(db):
    return SqlStore(db)


@pytest.fixture
def log_file(db, tmp_path):
    """A registered log file whose bytes live at tmp_path/access.log."""
    return db.register_log_file(
        owner="alice",
        filename="access.log",
        storage_key=str(tmp_path / "access.log")
    )
