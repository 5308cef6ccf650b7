#!/usr/bin/env python3
"""
Database initialization script
Creates the snapshot/report tables and optionally seeds a demo session
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load .env file
from dotenv import load_dotenv
load_dotenv()

from bookie.models import Base, engine, SessionLocal
from bookie.services.persistence import SnapshotStore
from bookie.services.session import BookieSession
import logging
from sqlalchemy import text, inspect

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_INPUTS = [
    "12r 1000\napu 500",
    "--- Ko Aung ---\n25 = 6000\n5t 200",
    "--- Ma Hla ---\n25 7000\n34 56 r 400",
]


def init_database(drop_existing: bool = False):
    """
    Initialize database tables

    Args:
        drop_existing: If True, drops all tables first (DANGER: data loss!)
    """
    logger.info("Initializing bookie database...")

    if drop_existing:
        logger.warning("Dropping all existing tables!")
        response = input("Are you sure? This will delete all data. Type 'yes' to confirm: ")
        if response.lower() != 'yes':
            logger.info("Aborted.")
            return
        Base.metadata.drop_all(bind=engine)
        logger.info("Existing tables dropped")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    inspector = inspect(engine)
    logger.info(f"Tables: {', '.join(inspector.get_table_names())}")
    return True


def seed_demo_session():
    """Record a few direct and inbox submissions in the default 2D session"""
    logger.info("Seeding demo session...")
    session = BookieSession.open(SnapshotStore(SessionLocal))
    session.add_agent("Ko Aung", 10)
    for raw in DEMO_INPUTS:
        if raw.startswith("---"):
            session.add_inbox_bets(raw)
        else:
            session.add_bets(raw)
    session.add_limit_group("25", 5000)
    summary = session.summary()
    logger.info(
        "Demo session %s: total %.0f, over limit %.0f",
        session.key, summary["total_bet_amount"], summary["total_over_limit_amount"],
    )


def check_connection():
    """Test database connection"""
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize bookie database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables (DANGER!)")
    parser.add_argument("--seed", action="store_true", help="Seed a demo 2D session")
    parser.add_argument("--check", action="store_true", help="Only check connection")

    args = parser.parse_args()

    if args.check:
        check_connection()
    else:
        if check_connection():
            init_database(drop_existing=args.drop)

            if args.seed:
                seed_demo_session()

            logger.info("Database initialization complete!")
        else:
            logger.error("Cannot initialize database - connection failed")
            sys.exit(1)
