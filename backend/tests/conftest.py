"""Pytest configuration for backend tests."""
import sys
import os
from pathlib import Path
from uuid import uuid4
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Models use portable column types, so tests default to an in-memory SQLite database.
# Set TEST_DATABASE_URL to run against a throwaway Postgres database instead.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")

# Settings refuse to load without DATABASE_URL; never point tests at a real database
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from sayso.database import Base, get_db  # noqa: E402
import sayso.models  # noqa: E402,F401
from sayso.main import app  # noqa: E402
from sayso.core.auth import get_current_profile  # noqa: E402
from sayso.core.profile_helpers import get_or_create_profile_by_auth_id  # noqa: E402
from sayso.models import Profile  # noqa: E402
from sayso.utils import instrumentation  # noqa: E402


@pytest.fixture(scope="function")
def engine():
    """
    Create a fresh test database engine per test.

    In-memory SQLite with a StaticPool keeps a single connection alive so the
    schema survives across sessions and the TestClient's worker threads.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        test_engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        test_engine = create_engine(TEST_DATABASE_URL, pool_pre_ping=True)

    if not Base.metadata.tables:
        raise RuntimeError(
            "No tables registered in Base.metadata. "
            "Did you import sayso.models? All model classes must be imported before create_all()."
        )

    Base.metadata.create_all(bind=test_engine)

    yield test_engine

    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine, monkeypatch) -> Session:
    """Create a database session for each test."""
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    # Best-effort event logging opens its own sessions
    monkeypatch.setattr(instrumentation, "SessionLocal", TestingSessionLocal)
    session = TestingSessionLocal()

    yield session

    session.close()


@pytest.fixture(scope="function")
def profile(db: Session) -> Profile:
    """A freshly onboarding user, as created on first authenticated request."""
    return get_or_create_profile_by_auth_id(
        db=db,
        auth_user_id=str(uuid4()),
        email="test@example.com",
    )


@pytest.fixture(scope="function")
def client(db: Session, profile: Profile):
    """TestClient wired to the test session and authenticated as `profile`."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_profile] = lambda: profile

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
