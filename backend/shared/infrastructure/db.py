"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns against SQLite (default) or PostgreSQL.
"""

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError

from shared.config.logging import audit_mutation, get_logger
from shared.config.settings import DATABASE_URL, settings
from shared.utils.exceptions import ConflictError, StorageError

logger = get_logger(__name__)


def _engine_options(url: str) -> dict[str, Any]:
    """
    Pool settings per backend.
    SQLite files take a single writer, so the pool tuning only applies to servers.
    """
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,  # Wait max 30s for connection from pool
        "pool_recycle": 1800,  # Recycle connections after 30 minutes
        "connect_args": {"connect_timeout": 10},
    }


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """SQLite ignores foreign keys (and their ON DELETE rules) unless asked per connection."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_engine(
    DATABASE_URL,
    echo=settings.sql_echo,
    **_engine_options(DATABASE_URL),
)

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/lots")
        def list_lots(db: Session = Depends(get_db)):
            return LotService(db).list_lots()

    The session is automatically closed after the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI (CLI, seeding).

    Usage:
        with get_db_context() as db:
            LabelService(db).flatten_for_label(lot_id)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session, operation: str, **log_context: Any) -> Generator[Session, None, None]:
    """
    Run one mutation as a single atomic unit.

    Commits when the block finishes. Any error rolls the whole unit back
    before it leaves the block: typed AppExceptions propagate unchanged,
    storage failures are logged with their traceback and surface as an
    opaque StorageError. Committed units are written to the audit log.

    Usage:
        with transaction(self.db, "crear lote", recipe_id=recipe_id):
            self.db.add(lot)
    """
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConflictError(
            f"Conflicto de concurrencia durante {operation}", error=str(e), **log_context
        ) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Storage failure during {operation}",
            error=str(e),
            exc_info=True,
            **log_context,
        )
        raise StorageError(operation, **log_context) from e
    except Exception:
        db.rollback()
        raise

    audit_mutation(operation, **log_context)
