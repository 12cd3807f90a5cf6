"""Shared pytest fixtures for test suite"""
import os
import pytest
import sys
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import Callable, Generator
from unittest.mock import Mock, patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
import fakeredis

# Configure the app for tests before anything imports drip.core.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["ADMIN_API_TOKEN"] = "test-admin-token"
os.environ["UNSUBSCRIBE_SECRET"] = "test-unsubscribe-secret"
os.environ["RESEND_API_KEY"] = "re_test_key"
os.environ["OTEL_EXPORTER_OTLP_ENDPOINT"] = ""

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from drip.main import app
from drip.db.session import get_db
from drip.db import redis as redis_module
from drip.models import Base
from drip.models.user import User
from drip.models.resume import Resume, ResumeStatus
from drip.services.email_service import RESEND_TEST_DELIVERED


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

# Fixed reference time so window/cooldown boundaries are exact
NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def cron_headers() -> dict:
    return {"Authorization": "Bearer test-cron-secret"}


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": "Bearer test-admin-token"}


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    # Create all tables
    Base.metadata.create_all(bind=test_engine)

    # Create session
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def mock_redis():
    """Mock Redis client using fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    # Fake servers can be shared between instances; start every test with empty counters
    fake_redis.flushall()
    with patch.object(redis_module, '_client', fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database and mocked Redis"""

    # Override get_db dependency to use test database
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db

    try:
        # Tables live on the test engine; skip startup DB work and instrumentation
        with patch('drip.main.init_db'):
            with patch('drip.main.instrument_sqlalchemy'):
                with TestClient(app) as test_client:
                    yield test_client
    finally:
        # Cleanup - always clear overrides
        app.dependency_overrides.clear()


@pytest.fixture(scope="function", autouse=True)
def mock_resend():
    """Automatically mock Resend for all tests so no real email is sent"""
    with patch('drip.services.email_service.resend') as mock_resend_module:
        mock_resend_module.Emails.send = Mock(return_value={"id": "re_msg_test123"})
        yield mock_resend_module


@pytest.fixture(scope="function")
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory for users; defaults to an active, opted-in English user"""
    counter = {"n": 0}

    def _make_user(**overrides) -> User:
        counter["n"] += 1
        n = counter["n"]
        values = {
            "id": f"user_{n}",
            "email": f"delivered+user{n}@resend.dev",
            "name": f"User {n}",
            "email_opt_out": False,
            "email_preferences": {"locale": "en"},
            "created_at": NOW,
            "last_login_at": NOW,
        }
        values.update(overrides)
        user = User(**values)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture(scope="function")
def test_user(make_user) -> User:
    """A single opted-in user using the Resend test address"""
    return make_user(id="user_test", email=RESEND_TEST_DELIVERED, name="Test User")


@pytest.fixture(scope="function")
def make_resume(db_session: Session) -> Callable[..., Resume]:
    counter = {"n": 0}

    def _make_resume(user: User, updated_at: datetime, **overrides) -> Resume:
        counter["n"] += 1
        values = {
            "id": f"resume_{counter['n']}",
            "user_id": user.id,
            "title": "Software Engineer",
            "status": ResumeStatus.DRAFT.value,
            "created_at": updated_at - timedelta(hours=1),
            "updated_at": updated_at,
        }
        values.update(overrides)
        resume = Resume(**values)
        db_session.add(resume)
        db_session.commit()
        db_session.refresh(resume)
        return resume

    return _make_resume


# Pytest markers for test categorization
def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "critical: Critical tests that must pass")
    config.addinivalue_line("markers", "high: High priority tests")
    config.addinivalue_line("markers", "medium: Medium priority tests")
