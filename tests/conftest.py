"""
Test configuration and fixtures for Pawlog.

Implements the transaction rollback pattern:
- Session-scoped engine (in-memory SQLite by default, TEST_DATABASE_URL for PostgreSQL)
- Function-scoped transactional session with automatic rollback
- TestClient with database dependency override
- Authenticated client fixtures
- Mock vision model service
"""

import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models import User, Session as UserSession


# =============================================================================
# Database Fixtures
# =============================================================================


def get_test_database_url() -> str:
    """
    Get the test database URL.

    Priority:
    1. TEST_DATABASE_URL environment variable
    2. In-memory SQLite (single shared connection)

    Each test runs in a transaction that is rolled back after the test,
    so no test data persists and tests are fully isolated.
    """
    return os.environ.get("TEST_DATABASE_URL", "sqlite://")


def _create_sqlite_engine(database_url: str):
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine, "connect")
    def disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="session")
def test_engine():
    """
    Create test database engine once per session.

    Tables are created at the start and dropped at the end.
    """
    database_url = get_test_database_url()

    if database_url.startswith("sqlite"):
        engine = _create_sqlite_engine(database_url)
    else:
        engine = create_engine(database_url)

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(test_engine) -> Generator[Session, None, None]:
    """
    Provide a transactional database session that rolls back after each test.

    Service code commits and rolls back freely: the session runs inside a
    SAVEPOINT of the outer transaction, so commit() releases the savepoint
    and rollback() only undoes work since the last commit.
    """
    connection = test_engine.connect()
    transaction = connection.begin()

    TestingSessionLocal = sessionmaker(
        bind=connection, join_transaction_mode="create_savepoint"
    )
    session = TestingSessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# TestClient Fixtures
# =============================================================================


def _override_get_db(db: Session):
    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - managed by db fixture

    return override_get_db


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """TestClient with database dependency override, no session cookie."""
    app.dependency_overrides[get_db] = _override_get_db(db)

    with TestClient(app) as test_client:
        # Set default Referer so CSRF Origin middleware allows requests
        test_client.headers["referer"] = "http://testserver/"
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Authentication Fixtures
# =============================================================================


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user."""
    import bcrypt

    password_hash = bcrypt.hashpw(
        "testpassword123".encode("utf-8"), bcrypt.gensalt()
    ).decode("utf-8")

    user = User(
        email="testuser@example.com", password_hash=password_hash, is_admin=False
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def test_session(db: Session, test_user: User) -> UserSession:
    """Create a test session for the test user."""
    session = UserSession(
        user_id=test_user.id,
        token=secrets.token_urlsafe(32),
        expires_at=datetime.now(timezone.utc) + timedelta(days=7),
        user_agent="pytest-test-client",
        ip_address="127.0.0.1",
    )
    db.add(session)
    db.flush()
    return session


@pytest.fixture
def auth_client(
    db: Session, test_session: UserSession
) -> Generator[TestClient, None, None]:
    """
    Authenticated TestClient for the test user.

    Creates a separate TestClient instance to avoid cookie conflicts.
    """
    from app.config import settings

    app.dependency_overrides[get_db] = _override_get_db(db)

    with TestClient(app) as test_client:
        test_client.cookies.set(settings.session_cookie_name, test_session.token)
        # Set default Referer so CSRF Origin middleware allows requests
        test_client.headers["referer"] = "http://testserver/"
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def context(test_user: User):
    """AnalysisContext for the test user, as the auth dependency would build it."""
    from app.services.auth.context import AnalysisContext

    return AnalysisContext(user_id=test_user.id)


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_vision_service(monkeypatch):
    """
    Mock vision model service wired into the analysis pipeline.

    Returns a mock service that can be configured per test.
    """
    from app.services.analysis_service import analysis_service
    from tests.fixtures.mocks import MockVisionModelService

    mock_service = MockVisionModelService()
    monkeypatch.setattr(analysis_service, "model_service", mock_service)
    return mock_service


@pytest.fixture
def image_data() -> str:
    """A valid inline base64 JPEG payload."""
    from tests.fixtures.mocks import make_jpeg_base64

    return make_jpeg_base64()
