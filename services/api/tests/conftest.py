import os

# Settings are read at import time; prepare the environment first.
os.environ["AI_MODE"] = "mock"
os.environ["ENCRYPTION_KEY"] = "0123456789abcdef0123456789abcdef"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import pytest
import fakeredis
import fakeredis.aioredis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fitpantry.main import app
from fitpantry.db import Base, get_db
from fitpantry.models import User, UserProfile
from fitpantry.auth import create_session, pwd_context
from fitpantry.core.ai_client import ai_client
from fitpantry.core.crypto import get_vault
from fitpantry.infra import redis_client

# --- Test Database Setup ---

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # one shared in-memory database across sessions
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "Sup3rSecret"
VALID_API_KEY = "AIzaSyA-test-key-0123456789abcdefghij"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def mock_redis():
    server = fakeredis.FakeServer()
    # Create fake clients sharing the same server
    async_redis = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    sync_redis = fakeredis.FakeRedis(server=server, decode_responses=True)

    # Force the clients into the infra module
    redis_client._redis_async = async_redis
    redis_client._redis_sync = sync_redis

    yield sync_redis

    # Cleanup
    redis_client._redis_async = None
    redis_client._redis_sync = None


@pytest.fixture(autouse=True)
def _mock_ai_mode():
    ai_client.mode = "mock"
    yield
    ai_client.mode = "mock"


@pytest.fixture
def client():
    """Test client with DB override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Direct database session for setup."""
    session = TestingSessionLocal()
    yield session
    session.close()


def _make_user(db_session, email: str) -> User:
    user = User(email=email, password_hash=pwd_context.hash(TEST_PASSWORD))
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def user(db_session):
    return _make_user(db_session, "alice@example.com")


@pytest.fixture
def other_user(db_session):
    return _make_user(db_session, "bob@example.com")


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_session(user.id)}"}


@pytest.fixture
def other_auth_headers(other_user):
    return {"Authorization": f"Bearer {create_session(other_user.id)}"}


@pytest.fixture
def user_with_key(db_session, user):
    """User whose profile already holds an encrypted, valid-looking API key."""
    profile = UserProfile(
        user_id=user.id,
        dietary_preferences=[],
        api_key_encrypted=get_vault().encrypt(VALID_API_KEY),
        has_api_key=True,
    )
    db_session.add(profile)
    db_session.commit()
    return user
