"""Database module.

Engine bootstrap and session handling:
- SQLAlchemy 2.x ORM models (see `userlifecycle.db.models`)
- URL assembly from settings and resolved secrets
- One-shot connection retry at startup
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

if TYPE_CHECKING:
    from collections.abc import Generator

    from userlifecycle.core.config import DatabaseSettings
    from userlifecycle.core.secrets import SecretResolver

logger = logging.getLogger(__name__)


class DatabaseUnavailableError(Exception):
    """Raised when the database cannot be reached after the retry."""

    def __init__(self, message: str, attempts: int) -> None:
        self.message = message
        self.attempts = attempts
        super().__init__(message)


def build_database_url(settings: DatabaseSettings, resolver: SecretResolver) -> URL:
    """Build the connection URL.

    A configured `url` wins; otherwise the database name and credentials
    are resolved through the secret resolver.

    Args:
        settings: Database settings.
        resolver: Resolver for the logical secret names in the settings.

    Returns:
        SQLAlchemy URL object (renders with the password masked).

    Raises:
        SecretNotFoundError: If a required secret is missing.
    """
    if settings.url is not None:
        return make_url(settings.url.get_secret_value())

    return URL.create(
        drivername=settings.drivername,
        username=resolver.resolve(settings.user_secret),
        password=resolver.resolve(settings.password_secret),
        host=settings.host,
        port=settings.port,
        database=resolver.resolve(settings.name_secret),
    )


def create_db_engine(settings: DatabaseSettings, url: URL) -> Engine:
    """Create the engine used for the whole run.

    Args:
        settings: Database settings (pool sizing, echo).
        url: Connection URL.

    Returns:
        SQLAlchemy Engine.
    """
    return create_engine(
        url,
        pool_size=settings.pool_size,
        max_overflow=0,
        pool_timeout=settings.pool_timeout,
        pool_pre_ping=True,
        echo=settings.echo,
    )


def ping(engine: Engine) -> None:
    """Open a connection and run a trivial statement."""
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def connect_with_retry(
    settings: DatabaseSettings,
    resolver: SecretResolver,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> Engine:
    """Create the engine and verify the database is reachable.

    On failure the call waits `settings.connect_retry_delay` seconds and
    tries exactly once more.

    Args:
        settings: Database settings.
        resolver: Secret resolver for credentials.
        sleep: Sleep function (injectable for tests).

    Returns:
        Engine with a verified connection.

    Raises:
        DatabaseUnavailableError: If both attempts fail.
    """
    url = build_database_url(settings, resolver)
    engine = create_db_engine(settings, url)
    logger.debug("Connecting to database: %s", url)

    try:
        ping(engine)
    except DBAPIError as e:
        logger.warning(
            "Database connection failed, retrying in %.0fs: %s",
            settings.connect_retry_delay,
            e.orig if e.orig is not None else e,
        )
        sleep(settings.connect_retry_delay)
        try:
            ping(engine)
        except DBAPIError as retry_error:
            engine.dispose()
            msg = f"Could not connect to database {url.host}/{url.database} after 2 attempts"
            raise DatabaseUnavailableError(msg, attempts=2) from retry_error

    logger.info("Database connection established: host=%s", url.host)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create the session factory bound to the run's engine."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def get_session(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Get a database session for the run.

    Usage:
        with get_session(factory) as session:
            LifecycleJob(session, mailer).run()

    Yields:
        Session for database operations.
    """
    session = factory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
