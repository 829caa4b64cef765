"""Database engine factory and session management."""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import structlog
from sqlalchemy import Engine, event
from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.exc import ArgumentError, NoSuchModuleError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pwrmon.config.settings import Settings
from pwrmon.db.base import Base
from pwrmon.utils.exceptions import ConfigurationError, StoreUnavailableError

logger = structlog.get_logger(__name__)


def _connect_args(settings: Settings) -> dict[str, Any]:
    """Build driver arguments that bound every database call by db_timeout."""
    url = settings.database_url
    timeout = settings.db_timeout

    if url.startswith("sqlite"):
        # Busy timeout: how long a writer waits on a locked database
        return {"check_same_thread": False, "timeout": timeout}
    if url.startswith("postgresql"):
        return {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    if url.startswith(("mysql", "mariadb")):
        seconds = max(1, int(timeout))
        return {"connect_timeout": seconds, "read_timeout": seconds, "write_timeout": seconds}
    return {}


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(settings: Settings) -> Engine:
    """Create a SQLAlchemy engine from settings.

    Args:
        settings: Application settings containing database URL.

    Returns:
        Configured SQLAlchemy engine.

    Raises:
        ConfigurationError: If the URL is malformed or its driver is not installed.
    """
    engine_kwargs: dict[str, Any] = {
        "connect_args": _connect_args(settings),
        "echo": settings.log_level == "DEBUG",
        "pool_pre_ping": True,
    }

    if settings.is_sqlite:
        if ":memory:" in settings.database_url:
            # Share the single in-memory database across threads
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_size"] = settings.db_pool_size
        engine_kwargs["pool_timeout"] = settings.db_timeout

    try:
        engine = sa_create_engine(settings.database_url, **engine_kwargs)
    except (ArgumentError, NoSuchModuleError, ImportError) as e:
        raise ConfigurationError(f"Invalid database URL: {e}") from e

    if settings.is_sqlite:
        # Readings must reference an existing device
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    return engine


def create_tables(engine: Engine) -> None:
    """Create all database tables.

    Args:
        engine: SQLAlchemy engine.
    """
    # Import models to ensure they're registered with Base
    from pwrmon.db import models as _  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_tables(engine: Engine) -> None:
    """Drop all database tables.

    Args:
        engine: SQLAlchemy engine.
    """
    Base.metadata.drop_all(bind=engine)


@contextmanager
def get_session(engine: Engine) -> Generator[Session, None, None]:
    """Get a database session context manager.

    Args:
        engine: SQLAlchemy engine.

    Yields:
        Database session that will be automatically committed on success
        or rolled back on failure.

    Raises:
        StoreUnavailableError: If the database cannot be reached or times out.
    """
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    session = session_factory()

    try:
        yield session
        session.commit()
    except (OperationalError, PoolTimeoutError) as e:
        session.rollback()
        logger.error("Database unavailable", error=str(e))
        raise StoreUnavailableError("Database unavailable") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
