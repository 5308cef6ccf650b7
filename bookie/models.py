"""
Database models for the bookie ledger
SQLAlchemy ORM, SQLite by default
"""

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Float,
    DateTime,
    JSON,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from datetime import datetime
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///bookie.db")


def make_engine(url: str):
    """Engine for ``url``; SQLite connections are shared across request threads."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)
    return create_engine(url, pool_pre_ping=True, echo=False)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class AppData(Base):
    """Key/value store for session snapshots, agents and preferences"""

    __tablename__ = "app_data"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Report(Base):
    """Saved end-of-session report (financial totals + raw inputs to replay)"""

    __tablename__ = "reports"

    id = Column(String, primary_key=True)
    lottery_type = Column(String, nullable=False, index=True)
    mode = Column(String, nullable=False)
    session = Column(String, nullable=True)  # morning / evening (2D)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    total_bet_amount = Column(Float, default=0.0)
    net_amount = Column(Float, default=0.0)
    bet_count = Column(Integer, default=0)

    data = Column(JSON, nullable=False)  # full report payload


def init_db(bind=None):
    """Initialize database tables"""
    Base.metadata.create_all(bind=bind or engine)


if __name__ == "__main__":
    init_db()
    print("Database tables created")
