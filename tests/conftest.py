"""
Pytest configuration and fixtures for Let's Meet tests.

Provides database session fixtures, sample users and a wired
SchedulingService backed by an in-memory notifier.
"""

from typing import Generator

import pytest
import sqlalchemy as sa
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

# Importing the database module registers the SQLite foreign key pragma
from letsmeet.database import create_session_factory
from letsmeet.models import Base, User
from letsmeet.services.notifier import InMemoryNotifier
from letsmeet.services.scheduling import SchedulingService


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """
    In-memory SQLite engine with all tables created.

    StaticPool keeps the single in-memory database shared by every session
    (and by the API test client's worker threads).
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    try:
        yield engine
    finally:
        # Disable foreign key constraints for drop operations
        with engine.begin() as connection:
            connection.execute(sa.text("PRAGMA foreign_keys=OFF"))
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine: Engine) -> Generator[Session, None, None]:
    """
    Create a clean database session for each test.

    Yields:
        Session: SQLAlchemy session for database operations
    """
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def notifier() -> InMemoryNotifier:
    """Notifier collecting events per recipient."""
    return InMemoryNotifier()


@pytest.fixture
def service(db_session: Session, notifier: InMemoryNotifier) -> SchedulingService:
    """SchedulingService bound to the test session."""
    return SchedulingService(db_session, notifier)


def _create_user(db_session: Session, name: str, city: str = "Toronto") -> User:
    user = User(name=name, email=f"{name.lower()}@example.com", city=city)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def make_user(db_session: Session):
    """Factory fixture persisting a user by name."""

    def factory(name: str, city: str = "Toronto") -> User:
        return _create_user(db_session, name, city)

    return factory


@pytest.fixture
def alice(db_session: Session) -> User:
    """First sample user."""
    return _create_user(db_session, "Alice")


@pytest.fixture
def bob(db_session: Session) -> User:
    """Second sample user."""
    return _create_user(db_session, "Bob")


@pytest.fixture
def carol(db_session: Session) -> User:
    """Third sample user."""
    return _create_user(db_session, "Carol")
