"""
Shared fixtures: in-memory database, seeded users, tokens and fake push pool.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.dependencies import get_push_pool
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import SessionLocal, get_db
from app.main import app
from app.models import User

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Code that opens its own sessions (background tasks, websocket auth) uses SessionLocal
SessionLocal.configure(bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FakePushPool:
    """Collects pushes instead of sending them."""

    def __init__(self):
        self.items = []

    def enqueue(self, data):
        self.items.append(data)


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def users(db):
    """alice (1), bob (2), carol (3)."""
    seeded = [
        User(username="alice", email="alice@example.com"),
        User(username="bob", email="bob@example.com"),
        User(username="carol", email="carol@example.com"),
    ]
    db.add_all(seeded)
    db.commit()
    for user in seeded:
        db.refresh(user)
    return seeded


def token_for(user: User) -> str:
    return create_access_token({"user_id": user.id, "username": user.username})


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture()
def headers(users):
    """Auth headers per seeded user, same order as ``users``."""
    return [auth_headers(user) for user in users]


@pytest.fixture()
def push_pool():
    return FakePushPool()


@pytest.fixture()
def client(db, push_pool):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_pool] = lambda: push_pool
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
