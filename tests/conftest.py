"""Shared test fixtures for all test groups.

Database tests run against TEST_DATABASE_URL when set (PostgreSQL, to
exercise row locks and JSONB), otherwise against a throwaway SQLite file.
"""

import os
import uuid
from datetime import UTC, datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from skill_loop.db.base import Base, build_engine, build_session_factory
from skill_loop.db.models.user import User


class RecordingNotifier:
    """JourneyNotifier that remembers every call."""

    def __init__(self):
        self.calls: list[tuple] = []

    async def phase_overdue(self, journey_id, user_id, phase_number, phase_title, due_date, mentor_id):
        self.calls.append(("phase_overdue", journey_id, phase_number))

    async def journey_completed(self, journey_id, user_id, cycle_number):
        self.calls.append(("journey_completed", journey_id, cycle_number))

    async def mentor_assigned(self, journey_id, user_id, mentor_id, phase_title, started_at, duration_days):
        self.calls.append(("mentor_assigned", phase_title, mentor_id))

    def of(self, kind: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == kind]


@pytest.fixture
def start_date() -> datetime:
    """Fixed journey start used by scheduling assertions."""
    return datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def db_url(tmp_path) -> str:
    return os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'skill_loop_test.db'}"


@pytest.fixture
async def engine(db_url: str) -> AsyncEngine:
    """Create test engine with a clean schema."""
    engine = build_engine(db_url)

    # Import all models so metadata is populated
    import skill_loop.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncSession:
    """Create an async session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_user(session_factory: async_sessionmaker[AsyncSession]):
    """Factory fixture: insert a user and return its id."""

    async def _make(name: str = "Test Employee", email: str | None = None) -> uuid.UUID:
        async with session_factory() as s:
            user = User(id=uuid.uuid4(), email=email or f"{uuid.uuid4().hex[:10]}@example.com", name=name)
            s.add(user)
            await s.commit()
            return user.id

    return _make
