import os
import sys
from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.append(PROJECT_ROOT)

from backend.app.auth.jwt import create_access_token  # noqa: E402
from backend.app.main import create_app  # noqa: E402
from urbanfix.db import get_db  # noqa: E402


@pytest.fixture
def test_app_client(test_db) -> Iterator[tuple[TestClient, sessionmaker]]:
    db_url, TestingSessionLocal, engine = test_db

    app = create_app()

    def override_get_db() -> Iterator[Session]:
        db = TestingSessionLocal()
        try:
            yield db
            db.commit()  # Auto-commit on success like production
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, TestingSessionLocal


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Build an Authorization header for a caller with the given claims."""

    def _headers(email: str, role: str = "citizen", **claims) -> dict[str, str]:
        token = create_access_token({"sub": email, "email": email, "role": role, **claims})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(test_app_client) -> TestClient:
    client, _ = test_app_client
    return client
