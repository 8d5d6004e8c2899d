"""
Shared fixtures for user_service tests.

The database URL is pinned before the application modules are imported so
tests never touch a developer's database file.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_users.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from user_platform.user_platform.user_service.main import app  # noqa: E402
from user_platform.user_platform.user_service.db import Base, engine, SessionLocal  # noqa: E402
from user_platform.user_platform.user_service.models import User  # noqa: E402
from user_platform.user_platform.user_service.auth import hash_password, create_access_token  # noqa: E402

PASSWORD = "password1"


@pytest.fixture(autouse=True)
def reset_database():
    # Drop all tables and recreate them before each test
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db_session():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def insert_user(db_session):
    """Insert a user directly, bypassing the API."""
    def _insert(name, email, role="user", is_email_verified=False):
        user = User(
            name=name,
            email=email,
            password=hash_password(PASSWORD),
            role=role,
            is_email_verified=is_email_verified,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _insert


@pytest.fixture
def user_one(insert_user):
    return insert_user("Alice Carter", "alice@example.com")


@pytest.fixture
def user_two(insert_user):
    return insert_user("Bruno Diaz", "bruno@example.com")


@pytest.fixture
def admin(insert_user):
    return insert_user("Zed Admin", "zed@example.com", role="admin")


def auth_header(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def fresh_user(user_id):
    """Load a user through a new session so API writes are visible."""
    db = SessionLocal()
    try:
        return db.query(User).filter(User.id == user_id).first()
    finally:
        db.close()
