"""
SmartNotes Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── alice / bob:         two Identity values
    ├── db_session_factory:  async sessionmaker on a fresh SQLite file
    ├── store:               SqlAlchemyNoteStore on that database
    ├── summarizer:          StubSummarizer (no Gemini calls)
    ├── lifecycle:           NoteLifecycleManager wired to both
    ├── mock_db_session:     AsyncMock session for driver-error tests
    ├── make_token:          signs session tokens like the identity provider
    └── test_client:         HTTPX AsyncClient with the lifecycle overridden
"""

import asyncio
import os
import time
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

# Settings are read at import time; configure the environment first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["JWT_SECRET"] = "test-jwt-secret-at-least-32-characters"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from smartnotes.config import settings
from smartnotes.database import Base
from smartnotes.schemas.identity import Identity
from smartnotes.services.note_lifecycle import NoteLifecycleManager
from smartnotes.services.note_store import SqlAlchemyNoteStore
from smartnotes.services.summarizer_base import Summarizer


class StubSummarizer(Summarizer):
    """
    Summarizer double.

    - `calls` records every text it was asked to summarize
    - `gate`, when set, makes summarize() wait until the test releases it
    - `started` is set as soon as a call begins
    - `error`, when set, is raised instead of returning a summary
    """

    def __init__(self):
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()
        self.error: Optional[Exception] = None
        self.healthy = True

    async def summarize(self, text: str) -> str:
        self.calls.append(text)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return f"Summary of: {text}"

    async def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
def alice():
    return Identity(user_id="user-alice", email="alice@example.com", display_name="Alice")


@pytest.fixture
def bob():
    return Identity(user_id="user-bob", email="bob@example.com")


@pytest_asyncio.fixture
async def db_session_factory(tmp_path):
    """
    Session factory on a fresh SQLite database file.

    A file (not :memory:) so concurrent sessions get separate connections.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'notes.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    await engine.dispose()


@pytest.fixture
def store(db_session_factory):
    return SqlAlchemyNoteStore(session_factory=db_session_factory)


@pytest.fixture
def summarizer():
    return StubSummarizer()


@pytest.fixture
def lifecycle(store, summarizer):
    return NoteLifecycleManager(store=store, summarizer=summarizer)


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.side_effect = IntegrityError(...)
        store = SqlAlchemyNoteStore(session_factory=lambda: mock_db_session)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.scalar = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.__aenter__.return_value = session
    session.__aexit__.return_value = False
    return session


@pytest.fixture
def make_token():
    """Signs a session token the way the identity provider does."""

    def _make(
        sub: Optional[str] = "user-alice",
        email: str = "alice@example.com",
        user_metadata: Optional[dict] = None,
        expires_in: int = 3600,
        secret: Optional[str] = None,
        audience: str = "authenticated",
    ) -> str:
        claims = {"email": email, "aud": audience, "exp": int(time.time()) + expires_in}
        if sub is not None:
            claims["sub"] = sub
        if user_metadata is not None:
            claims["user_metadata"] = user_metadata
        return jwt.encode(claims, secret or settings.jwt_secret, algorithm="HS256")

    return _make


@pytest_asyncio.fixture
async def test_client(lifecycle):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    The process-wide lifecycle manager is replaced by the test one, so
    requests hit the SQLite store and the stub summarizer.
    """
    from smartnotes.main import app
    from smartnotes.routes.deps import get_note_lifecycle

    app.dependency_overrides[get_note_lifecycle] = lambda: lifecycle
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
