"""Engine, sessions and store-error translation for chatbridge.

SQLite under the platform data directory is the default backing store;
point DATABASE_URL at PostgreSQL for shared deployments. Everything is
synchronous: FastAPI runs the sync route handlers in its threadpool.

    from src.db.connection import get_db_context, init_db

    init_db()
    with get_db_context() as db:
        ...
"""

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.db.models import Base

logger = logging.getLogger(__name__)

_SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
)


def get_database_url() -> str:
    """Resolve the SQLAlchemy URL.

    DATABASE_URL wins. CHATBRIDGE_DB_PATH is accepted as either a URL or
    a bare file path. Otherwise chatbridge.db in the data directory.
    """
    explicit = os.environ.get("DATABASE_URL", "").strip()
    if explicit:
        return explicit

    path = os.environ.get("CHATBRIDGE_DB_PATH", "").strip()
    if path:
        return path if path.startswith("sqlite:") else f"sqlite:///{path}"

    from src.utils.paths import ensure_dirs_exist, get_default_db_path

    ensure_dirs_exist()
    return f"sqlite:///{get_default_db_path()}"


DATABASE_URL = get_database_url()
_IS_SQLITE = DATABASE_URL.startswith("sqlite")

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if _IS_SQLITE else {},
    echo=os.environ.get("SQL_ECHO", "").lower() == "true",
)


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    """Per-connection SQLite setup.

    Foreign keys make message rows follow their conversation on delete.
    WAL plus a busy timeout lets concurrent appends queue instead of
    failing with "database is locked".
    """
    if not _IS_SQLITE:
        return
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        if ":memory:" not in DATABASE_URL:
            for pragma in _SQLITE_PRAGMAS:
                cursor.execute(pragma)
        cursor.execute("PRAGMA busy_timeout=5000")
    finally:
        cursor.close()


SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session for Depends(); services commit their own writes."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Session for CLI commands: committed on success, rolled back on error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def store_guard(db: Session, operation: str) -> Generator[Session, None, None]:
    """Translate backing-store failures into StoreUnavailableError.

    Rolls the session back so it stays usable, logs the underlying error
    with the operation name, and raises the typed domain error. Domain
    errors raised inside the block pass through unchanged.

    Args:
        db: Active SQLAlchemy session.
        operation: Short operation name for the log line.

    Raises:
        StoreUnavailableError: On any SQLAlchemyError inside the block.
    """
    from src.errors.domain import StoreUnavailableError

    try:
        yield db
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Store operation %s failed: %s", operation, e)
        raise StoreUnavailableError(operation) from e


def check_db_connection() -> bool:
    """Return True when the database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database readiness check failed: %s", e)
        return False
    return True


def init_db() -> None:
    """Create any missing tables; existing ones are left alone."""
    Base.metadata.create_all(bind=engine)


def close_db() -> None:
    engine.dispose()
