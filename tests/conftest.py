"""
Shared test setup: environment must be in place before bookie modules import.
"""

import os

os.environ.setdefault("ENVIRONMENT", "development")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["API_KEY_USER1"] = "test-admin-key"
os.environ["API_KEY_USER2"] = "test-user-key"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bookie.models import Base
from bookie.services.persistence import SnapshotStore


@pytest.fixture
def store():
    """SnapshotStore on a private in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield SnapshotStore(factory)
    engine.dispose()
