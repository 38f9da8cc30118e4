"""Pytest configuration and shared fixtures.

Database-backed tests run against an in-memory SQLite database built from
the ORM models, so the suite needs no external services. The engine uses a
single shared connection, which matches the job's one-connection pool.
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from userlifecycle.db import create_session_factory, get_session
from userlifecycle.db.models import metadata

# Fixed run date so boundary tests are deterministic
RUN_DATE = date(2026, 3, 15)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Create an in-memory database with the full schema."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory configured like the job's."""
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session under test; seed and verify through separate sessions."""
    with get_session(session_factory) as session:
        yield session


@pytest.fixture
def today() -> date:
    """The run date used by database tests."""
    return RUN_DATE


# ---------------------------------------------------------------------------
# Settings fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def mock_smtp_settings() -> MagicMock:
    """Create mock SMTP settings for testing."""
    settings = MagicMock()
    settings.host = "localhost"
    settings.port = 1025
    settings.username = None
    settings.password = None
    settings.use_tls = False
    settings.use_ssl = False
    settings.from_address = "noreply@userlifecycle.test"
    settings.from_name = "Account Services"
    settings.timeout = 30
    return settings
