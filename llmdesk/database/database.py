"""Database configuration and session management."""

import logging
import os
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from llmdesk.config import settings

logger = logging.getLogger(__name__)


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        directory = os.path.dirname(url.database)
        if directory:
            os.makedirs(directory, exist_ok=True)


_ensure_sqlite_directory(settings.database_url)

# Create SQLAlchemy engine
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {},
)


def enable_sqlite_foreign_keys(target_engine) -> None:
    """Turn on foreign key enforcement for every new SQLite connection."""
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create declarative base for models
Base = declarative_base()


def get_db():
    """Get database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Initialize database tables.

    Creates all tables defined in the models if they don't exist.
    This function is idempotent and safe to call multiple times.
    """
    # Import all models to ensure they are registered with Base
    from llmdesk.models import ProviderRecord, ModelRecord  # noqa: F401

    bind = bind or engine
    logger.info("Initializing database...")

    existing_tables = inspect(bind).get_table_names()
    if not existing_tables:
        logger.info("No existing tables found. Creating all tables...")
    else:
        logger.info(f"Found existing tables: {existing_tables}")

    Base.metadata.create_all(bind=bind)

    created_tables = inspect(bind).get_table_names()
    logger.info(f"Database initialized with tables: {created_tables}")


def reset_db(bind=None):
    """Reset the database by dropping and recreating all tables.

    WARNING: This will delete all data. Use only for testing or development.
    """
    logger.warning("Resetting database...")
    Base.metadata.drop_all(bind=bind or engine)
    init_db(bind)
    logger.info("Database reset complete")
