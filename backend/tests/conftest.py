"""
Test configuration and fixtures for the tasks API tests.

Provides:
- Test database with SQLite in-memory for speed
- FastAPI test client with database dependency override
- Authentication helpers (JWT token generation)
- Common fixtures for users, tasks and comments
"""

import os
import sys
import logging
import tempfile
from datetime import timedelta
from typing import Callable, Dict, Generator, Optional

# Must be set before the application modules are imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="tasks-api-uploads-"))
os.environ.pop("MAIL_SERVER", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, get_db
from main import app
import models
from auth.security import hash_password, create_access_token
from comments.store import CommentStore
from comments.tree import CommentTreeMaterializer

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """
    Create a fresh in-memory SQLite database for each test.
    """
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def _override_get_db(test_db: Session):
    def override_get_db():
        yield test_db
    return override_get_db


@pytest.fixture(scope="function")
def client(test_db: Session) -> Generator[TestClient, None, None]:
    """
    Create FastAPI test client with database dependency override.
    """
    app.dependency_overrides[get_db] = _override_get_db(test_db)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def lenient_client(test_db: Session) -> Generator[TestClient, None, None]:
    """
    Test client that returns 500 responses instead of re-raising server errors.
    """
    app.dependency_overrides[get_db] = _override_get_db(test_db)

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _make_user(db: Session, name: str, email: str, password: str) -> models.User:
    user = models.User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {email} with ID: {user.id}")
    return user


@pytest.fixture(scope="function")
def regular_user(test_db: Session) -> models.User:
    return _make_user(test_db, "Regular User", "user@test.com", "user12345")


@pytest.fixture(scope="function")
def another_user(test_db: Session) -> models.User:
    return _make_user(test_db, "Another User", "another@test.com", "another123")


def create_auth_token(user: models.User, expires_delta: timedelta = None) -> str:
    """
    Helper to create JWT access token for a user.
    """
    return create_access_token({"sub": str(user.id), "email": user.email}, expires_delta)


@pytest.fixture(scope="function")
def auth_headers(regular_user: models.User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_auth_token(regular_user)}"}


@pytest.fixture(scope="function")
def another_user_auth_headers(another_user: models.User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_auth_token(another_user)}"}


@pytest.fixture(scope="function")
def task(test_db: Session, regular_user: models.User) -> models.Task:
    db_task = models.Task(
        title="Write report",
        priority=models.TaskPriority.high,
        owner_id=regular_user.id,
    )
    test_db.add(db_task)
    test_db.commit()
    test_db.refresh(db_task)
    return db_task


@pytest.fixture(scope="function")
def store(test_db: Session) -> CommentStore:
    return CommentStore(test_db)


@pytest.fixture(scope="function")
def materializer(store: CommentStore) -> CommentTreeMaterializer:
    return CommentTreeMaterializer(store)


@pytest.fixture(scope="function")
def make_comment(test_db: Session) -> Callable[..., models.Comment]:
    """
    Insert a comment row directly, bypassing the store, so tests can build
    shapes the API would never produce (cycles, dangling parents).
    """
    def _make_comment(
        text: str,
        task_id: int = 1,
        parent_id: Optional[int] = None,
        author: Optional[str] = "tester",
    ) -> models.Comment:
        comment = models.Comment(text=text, task_id=task_id, parent_id=parent_id, author=author)
        test_db.add(comment)
        test_db.commit()
        test_db.refresh(comment)
        return comment

    return _make_comment
