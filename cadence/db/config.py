"""Database configuration for the recurring task service."""
from typing import Generator
import logging

from sqlmodel import create_engine, Session
from sqlalchemy import event

from cadence.config import DATABASE_URL

logger = logging.getLogger(__name__)

# Check if we're using PostgreSQL or SQLite
IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    logger.info(f"Using SQLite database: {DATABASE_URL}")
else:
    logger.info("Using PostgreSQL database")

# SQLite connections are shared across the worker thread and the request threads
connect_args = {"check_same_thread": False} if IS_SQLITE else {}

engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)

if IS_SQLITE:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        # Enable foreign keys and WAL mode for better concurrency
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session
