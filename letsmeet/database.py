"""
Database configuration and session management.

Provides:
- Engine creation with dialect-specific configuration
- Session factory construction
- get_db() dependency for FastAPI request-scoped sessions
- Database initialization utilities

Nothing here is created at import time. The API builds its engine during
startup and keeps it on ``app.state``; scripts and tests build their own.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from letsmeet.config import Settings, get_settings

logger = logging.getLogger(__name__)


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints in SQLite."""
    if type(dbapi_conn).__module__.startswith("sqlite3"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_engine(
    database_url: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Engine:
    """
    Create a SQLAlchemy engine configured for the database type.

    Args:
        database_url: Connection URL (defaults to settings.database_url)
        settings: Settings to read defaults from (defaults to get_settings())

    Returns:
        Engine: Configured engine
    """
    settings = settings or get_settings()
    url = database_url or settings.database_url
    echo = settings.log_level == "DEBUG"  # Log SQL statements in debug mode

    if "sqlite" in url.lower():
        if url.startswith("sqlite:///") and ":memory:" not in url:
            Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

        return create_engine(
            url,
            connect_args={"check_same_thread": False},  # FastAPI runs sync endpoints on a thread pool
            poolclass=StaticPool,
            echo=echo,
        )

    # PostgreSQL-specific configuration
    return create_engine(
        url,
        pool_size=5,  # Maximum number of connections in pool
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Test connections before using them
        echo=echo,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Create a session factory bound to an engine.

    Sessions never autoflush; the service layer flushes and commits explicitly.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    FastAPI dependency for request-scoped database sessions.

    Yields a session from the factory stored on ``app.state.session_factory``.
    Rolls back on exception and always closes.

    Yields:
        Session: SQLAlchemy database session
    """
    db = request.app.state.session_factory()
    try:
        yield db
        db.commit()  # Services commit their own units of work; this is a no-op then
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside FastAPI.

    Usage for scripts, tests, or background tasks:
        with session_scope(factory) as db:
            SchedulingService(db, notifier).reconcile()

    Yields:
        Session: SQLAlchemy database session
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine) -> None:
    """
    Initialize database by creating all tables.

    This is useful for development and testing. In production, use Alembic migrations.
    """
    from letsmeet.models.base import Base
    import letsmeet.models  # noqa: F401  (registers every table on Base.metadata)

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


def drop_all_tables(engine: Engine) -> None:
    """
    Drop all tables from the database.

    WARNING: This will delete all data. Primarily for testing and development.
    """
    from letsmeet.models.base import Base
    import letsmeet.models  # noqa: F401

    logger.warning("Dropping all database tables...")
    Base.metadata.drop_all(bind=engine)
    logger.info("All database tables dropped")


def check_connection(engine: Engine) -> bool:
    """
    Test database connection.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
