"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Iterator

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DATABASE_CREATE_TABLES", "false")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="huddle-media-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from huddle.realtime import get_realtime_hub

from app import database
from app.database import get_db
from app.main import app
from app.models import Base


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine, monkeypatch) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine.

    Websocket handlers open their own sessions, so the module level factory is
    patched as well.
    """

    factory = sessionmaker(bind=test_engine, autoflush=False, future=True)
    monkeypatch.setattr(database, "SessionLocal", factory)
    return factory


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def realtime_hub():
    """Start every test with empty registries."""

    hub = get_realtime_hub()
    hub.reset()
    yield hub
    hub.reset()


@pytest.fixture()
def client(session_factory) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with the database dependency overridden."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

