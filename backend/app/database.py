import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from app.config import settings
from app.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores REFERENCES clauses unless this is set on every connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, **kwargs) -> Engine:
    """
    Create an engine for the given URL.

    SQLite gets thread sharing and foreign key enforcement; server databases
    get a bounded connection pool and a per-statement timeout.
    """
    if database_url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)  # Needed for SQLite
        engine = create_engine(database_url, connect_args=connect_args, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    connect_args = kwargs.pop("connect_args", {})
    if database_url.startswith("postgresql"):
        connect_args.setdefault(
            "options", f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_args=connect_args,
        **kwargs,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def transaction(session_factory: sessionmaker) -> Iterator[Session]:
    """
    One unit of work: commit on normal exit, roll back on any exception,
    always release the connection back to the pool.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def unit_of_work(session_factory: sessionmaker, operation: str) -> Iterator[Session]:
    """
    transaction() for service code: database errors are logged and re-raised
    as PersistenceError after the rollback.
    """
    try:
        with transaction(session_factory) as session:
            yield session
    except SQLAlchemyError as e:
        logger.exception(f"Failed to {operation}; transaction rolled back")
        raise PersistenceError(f"Failed to {operation}") from e


# Default engine for the running application
engine = build_engine(settings.database_url)
SessionLocal = build_session_factory(engine)
