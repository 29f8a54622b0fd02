# FILE: tests/conftest.py
"""
Pytest configuration for the AutoPlanner test suite.

Configures:
- pytest-asyncio for async test support
- in-memory SQLite engine / session shared by ORM-backed tests
- a ProviderGateway whose stream_generation replays scripted deltas
"""
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base, init_db
from app.providers.gateway import ProviderGateway

pytest_plugins = ["pytest_asyncio"]


@pytest.fixture
def db_engine():
    """In-memory SQLite engine. StaticPool so TestClient threads see the same DB."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


class ScriptedGateway(ProviderGateway):
    """Replays fixed deltas (optionally followed by an error) for every request."""

    def __init__(self, deltas=None, error=None):
        super().__init__()
        self.deltas = list(deltas or [])
        self.error = error
        self.calls = []
        self.closed = 0

    async def stream_generation(self, config, model, system_prompt, user_prompt):
        self.calls.append({
            "config": config,
            "model": model,
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
        })
        try:
            for delta in self.deltas:
                yield delta
            if self.error is not None:
                raise self.error
        finally:
            self.closed += 1


@pytest.fixture
def scripted_gateway():
    """Factory: scripted_gateway(["chunk", ...], error=None)."""
    return ScriptedGateway
