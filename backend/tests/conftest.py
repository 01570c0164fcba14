"""Shared test fixtures: mocked-session API client plus in-memory SQLite sessions."""
import os

# Settings are read at import time; keep tests off PostgreSQL, rate limits and slow hashing
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["APP_ENV"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ARGON2_MEMORY_COST"] = "1024"
os.environ["ARGON2_TIME_COST"] = "1"
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret-with-enough-length-32b")

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import get_db
from app.models import Base
from app.modules.countries import upsert_countries
from app.modules.ships import upsert_ships


@pytest.fixture
def mock_db():
    """MagicMock database session; returns None for all queries by default."""
    session = MagicMock()
    # Default: query().filter().first() returns None (not found)
    session.query.return_value.filter.return_value.first.return_value = None
    session.query.return_value.filter.return_value.all.return_value = []
    session.query.return_value.filter.return_value.order_by.return_value.all.return_value = []
    return session


@pytest.fixture
def api_client(mock_db):
    """TestClient with DB dependency overridden to use a MagicMock session."""
    def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


# -- In-memory SQLite --

@pytest.fixture
def engine():
    """One shared in-memory SQLite database per test (StaticPool keeps a single connection)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    """TestClient backed by the in-memory SQLite database."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def catalog(db):
    """Seed countries and ships."""
    upsert_countries(db)
    upsert_ships(db)
    return db
