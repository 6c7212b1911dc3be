"""
Pytest fixtures for UrbanFix tests.

Each test gets its own SQLite database file so that independent sessions
(and threads) see each other's committed writes, as they would against a
real server.
"""

import os

# Settings are cached on first use; pin test values before anything imports them
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("DEFAULT_PAGE_SIZE", "10")

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from urbanfix.db import Base, build_engine  # noqa: E402
from urbanfix.identity import Identity  # noqa: E402
from urbanfix.repositories import IssueRepository  # noqa: E402
from urbanfix.services import IssueLifecycleService  # noqa: E402


@pytest.fixture(scope="function")
def test_db(tmp_path):
    """Create a fresh test database for each test."""
    db_url = f"sqlite:///{tmp_path / 'urbanfix_test.db'}"
    engine = build_engine(db_url)

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
    )

    yield db_url, TestingSessionLocal, engine

    engine.dispose()


@pytest.fixture
def test_session(test_db):
    """Get a test session from the test database."""
    _, TestingSessionLocal, _ = test_db
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture
def issue_repo(test_session):
    return IssueRepository(test_session)


@pytest.fixture
def lifecycle(issue_repo):
    return IssueLifecycleService(issue_repo)


@pytest.fixture
def reporter():
    """Citizen who reports issues in most tests."""
    return Identity(email="a@x.com", name="Alice", photo_url="http://example.com/a.png")


@pytest.fixture
def voter():
    return Identity(email="b@y.com", name="Bob")


@pytest.fixture
def stranger():
    return Identity(email="c@z.com", name="Carol")


@pytest.fixture
def admin():
    return Identity(email="admin@city.gov", role="admin", name="Moderator")


@pytest.fixture
def sample_issue_data():
    """Sample submission as a citizen would send it."""
    return {
        "title": "Pothole",
        "description": "Deep pothole in the left lane near the school crossing",
        "location": "Main Street 12",
        "image": "https://img.example.com/pothole.jpg",
    }
