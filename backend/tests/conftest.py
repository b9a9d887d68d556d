import os

# Settings are read at import time; keep the app off any real database and
# never start the background dispatcher under test
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RUN_DISPATCHER"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from courtside.database import get_session  # noqa: E402
from courtside.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# CRITICAL: Test Database Setup with StaticPool
# ============================================================================
# 1. Use sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables are dropped after every test so scheduler tests start clean
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a freshly created schema"""
    # Import all models to ensure they're registered BEFORE create_all
    from courtside.models.court import Court  # noqa: F401
    from courtside.models.match import Match  # noqa: F401
    from courtside.models.match_duration_sample import MatchDurationSample  # noqa: F401
    from courtside.models.player import Player  # noqa: F401
    from courtside.models.priority_boost import PriorityBoost  # noqa: F401
    from courtside.models.system_config import SystemConfig  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="session_factory")
def session_factory_fixture(session: Session):
    """Independent sessions on the test database, one per scheduler instance"""
    return lambda: Session(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    CRITICAL: Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration. This ensures the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
