"""Root-level pytest fixtures for all tests.

Provides shared fixtures including:
- Process environment isolation (temp data dir and database file)
- In-memory SQLite session with all tables
- Service instances bound to that session
- A fake LLM completion client
"""

import os
import tempfile
from collections.abc import Generator

# Point the application engine at a throwaway file before any src import
# creates it, and make sure no developer key turns on API auth.
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="chatbridge-tests-")
os.environ["CHATBRIDGE_DATA_DIR"] = _TEST_DATA_DIR
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DATA_DIR}/chatbridge-test.db"
os.environ.pop("CHATBRIDGE_API_KEY", None)
os.environ.pop("CHATBRIDGE_CONFIG_PATH", None)
os.environ.pop("CHATBRIDGE_TRUST_PROXY", None)

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.db.models import Base
from src.services.conversation_service import ConversationService
from src.services.guest_session_service import GuestSessionService
from tests.helpers.fakes import FakeLLM


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Create an in-memory SQLite database for testing.

    Creates all tables, yields a session, and cleans up after test.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def guests(db_session: Session) -> GuestSessionService:
    return GuestSessionService(db_session)


@pytest.fixture
def conversations(db_session: Session) -> ConversationService:
    return ConversationService(db_session)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()
