"""API-specific test fixtures."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from skill_loop.core.config import get_settings


@pytest.fixture
def cron_secret(monkeypatch) -> str:
    """Configure CRON_SECRET for the duration of a test."""
    monkeypatch.setenv("CRON_SECRET", "test-cron-secret")
    get_settings.cache_clear()
    yield "test-cron-secret"
    get_settings.cache_clear()


@pytest.fixture
def api_client(engine, db_url, notifier):
    """FastAPI test client with test database.

    Initializes the global database via init_db inside the TestClient's
    own event loop so route handlers can use get_session_factory().
    The engine fixture ensures tables exist before this runs.
    """
    from fastapi import HTTPException

    from skill_loop.api.routes import api_router
    from skill_loop.api.routes.journeys import get_notifier
    from skill_loop.core.exceptions import SkillLoopError
    from skill_loop.db import close_db, init_db
    from skill_loop.main import generic_exception_handler, http_exception_handler, skill_loop_exception_handler

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        """Test lifespan - initialize DB in TestClient's event loop."""
        # Reset global so init_db creates a fresh engine in THIS loop
        import skill_loop.db.base as db_mod

        db_mod._engine = None
        db_mod._session_factory = None
        await init_db(db_url)
        yield
        await close_db()

    app = FastAPI(title="Skill Loop - Test Client", lifespan=test_lifespan)

    # Exception handlers (needed for debug_id testing)
    app.exception_handler(SkillLoopError)(skill_loop_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as client:
        yield client
