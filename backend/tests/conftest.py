"""Pytest fixtures for day summary backend tests."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from daysummary.api.deps import get_llm_service, get_session_factory
from daysummary.core.rate_limit import limiter
from daysummary.core.security import create_access_token
from daysummary.database import get_db
from daysummary.main import app
from daysummary.models import Base

from tests.factories import USER_ID, FakeLLM, seed_day


@pytest.fixture(scope="function")
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """Fresh file-backed SQLite database; collector threads each get a connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )

    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def test_db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def client(session_factory: sessionmaker, fake_llm: FakeLLM) -> Generator[TestClient, None, None]:
    """Test client wired to the test database and the fake LLM."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_llm_service] = lambda: fake_llm
    limiter.enabled = False
    try:
        yield TestClient(app)
    finally:
        limiter.enabled = True
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    """Bearer token for USER_ID."""
    token = create_access_token(data={"sub": USER_ID})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def service_headers() -> dict:
    """Bearer token for the scheduler's service role."""
    token = create_access_token(data={"sub": "scheduler", "role": "service"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seeded_day(test_db: Session) -> Session:
    seed_day(test_db)
    return test_db
